"""提及 -> 回复 全链路集成测试（echo 生成）

1. 轮询提及 -> 建任务 -> 编排 -> 平台收到回复
2. 重复轮询不重复建任务，也不重复回复
3. 单条提及失败不影响同批其他提及
"""

from httpx import AsyncClient


class TestEchoPipeline:
    async def test_poll_to_reply(self, client: AsyncClient, platform, integration_services):
        platform.add_mention("101", "@bot draw a red fox https://t.co/abc")
        platform.add_mention("102", "@bot paint the sea", author_id="43", username="bob")

        resp = await client.post("/api/mentions/poll")
        assert resp.status_code == 200
        assert resp.json()["created"] == 2
        assert resp.json()["cursor"] == "102"

        await integration_services.dispatcher.drain()

        assert sorted(r["text"] for r in platform.replies) == [
            "Echo: draw a red fox",
            "Echo: paint the sea",
        ]
        assert {r["reply"]["in_reply_to_tweet_id"] for r in platform.replies} == {"101", "102"}
        # echo 不产生媒体
        assert platform.upload_commands == []

        tasks = (await client.get("/api/tasks", params={"status": "COMPLETED"})).json()["tasks"]
        assert len(tasks) == 2

    async def test_repoll_does_not_duplicate(self, client: AsyncClient, platform, integration_services):
        platform.add_mention("201", "@bot draw a cat")

        await client.post("/api/mentions/poll")
        await integration_services.dispatcher.drain()
        second = (await client.post("/api/mentions/poll")).json()
        await integration_services.dispatcher.drain()

        assert second["created"] == 0
        assert second["advanced"] is False
        assert len(platform.replies) == 1

    async def test_failure_isolated_within_batch(self, client: AsyncClient, platform, integration_services, integration_store):
        platform.add_mention("301", "@bot draw a dog")
        platform.add_mention("302", "@bot this post was deleted")
        del platform.posts["302"]

        await client.post("/api/mentions/poll")
        await integration_services.dispatcher.drain()

        failed = await integration_store.task_store.get_task_by_mention_id("302")
        completed = await integration_store.task_store.get_task_by_mention_id("301")
        assert completed.status == "COMPLETED"
        assert failed.status == "FAILED"
        assert failed.attempts == 1
        assert failed.error_message == "Failed to get post details, error: API request failed: 404 Not Found"

        detail = (await client.get(f"/api/tasks/{failed.task_id}")).json()
        assert detail["task"]["error_message"] == failed.error_message
        assert detail["events"][-1]["payload"]["to_status"] == "FAILED"

    async def test_rate_limit_across_mentions(self, client: AsyncClient, platform, integration_services, integration_store):
        for i in range(6):
            platform.add_mention(str(400 + i), f"@bot picture {i}")

        await client.post("/api/mentions/poll")
        await integration_services.dispatcher.drain()

        tasks = await integration_store.task_store.list_tasks()
        failed = [t for t in tasks if t.status == "FAILED"]
        assert len(failed) == 1
        assert failed[0].error_message == "user alice : 42 rate limit exceeded, remaining 0 requests"
        assert len(platform.replies) == 5
