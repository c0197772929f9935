"""
@PURPOSE: 测试自定义场景执行器
@OUTLINE:
  - TestScenarioSuccess: 全部成功
  - TestScenarioFailure: 首个失败即停止
  - TestScenarioSteps: 同步/异步步骤与浏览器句柄
@DEPENDENCIES:
  - 外部: pytest, pytest-asyncio
  - 内部: testforge.core.scenario, tests.mocks
"""

import pytest

from testforge.core.scenario import ScenarioRunner, run_scenario
from testforge.core.state import Append
from testforge.models.result import StepStatus
from tests.mocks import MockPage


def _counting_steps(count, fail_at=None):
    """生成 count 个步骤, 第 fail_at 个（从 1 开始）抛出异常."""
    calls = []

    def make(position):
        def step(state):
            calls.append(position)
            if position == fail_at:
                raise RuntimeError(f"step {position} failed")
            return {f"key_{position}": position}

        return step

    return [make(position) for position in range(1, count + 1)], calls


class TestScenarioSuccess:
    """测试全部步骤成功"""

    @pytest.mark.asyncio
    async def test_records_one_outcome_per_step(self):
        steps, calls = _counting_steps(3)
        final = await run_scenario(steps, {"test_results": [], "errors": []})

        assert calls == [1, 2, 3]
        assert [o.step for o in final["test_results"]] == ["step_0", "step_1", "step_2"]
        assert all(o.status == StepStatus.SUCCESS for o in final["test_results"])
        assert final["errors"] == []
        assert final["key_3"] == 3

    @pytest.mark.asyncio
    async def test_empty_steps_return_initial_state(self):
        initial = {"test_data": {"a": 1}}
        final = await run_scenario([], initial)

        assert final == initial
        assert "test_results" not in final

    @pytest.mark.asyncio
    async def test_runner_is_reusable(self):
        runner = ScenarioRunner([lambda state: {"n": state.get("n", 0) + 1}])

        first = await runner({"n": 0})
        second = await runner({"n": 10})

        assert first["n"] == 1
        assert second["n"] == 11
        assert len(runner) == 1


class TestScenarioFailure:
    """测试首个失败即停止"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count,fail_at", [(1, 1), (3, 1), (3, 2), (5, 5)])
    async def test_stops_at_first_failure(self, count, fail_at):
        steps, calls = _counting_steps(count, fail_at=fail_at)
        final = await run_scenario(steps, {"test_results": [], "errors": []})

        assert calls == list(range(1, fail_at + 1))
        assert len(final["test_results"]) == fail_at
        assert final["test_results"][-1].status == StepStatus.FAILED
        assert len(final["errors"]) == 1
        assert final["errors"][0].step == f"step_{fail_at - 1}"
        assert final["errors"][0].error == f"step {fail_at} failed"

    @pytest.mark.asyncio
    async def test_partial_state_is_preserved(self):
        steps, _ = _counting_steps(4, fail_at=3)
        final = await run_scenario(steps, {})

        assert final["key_1"] == 1
        assert final["key_2"] == 2
        assert "key_3" not in final

    @pytest.mark.asyncio
    async def test_non_mapping_return_is_a_failure(self):
        final = await run_scenario([lambda state: "oops"], {})

        assert final["test_results"][0].status == StepStatus.FAILED
        assert final["errors"][0].step == "step_0"

    @pytest.mark.asyncio
    async def test_existing_records_are_kept(self):
        final = await run_scenario(
            [lambda state: 1 / 0],
            {"test_results": ["previous"], "errors": []},
        )

        assert final["test_results"][0] == "previous"
        assert len(final["test_results"]) == 2


class TestScenarioSteps:
    """测试步骤形式"""

    @pytest.mark.asyncio
    async def test_async_steps_and_handles(self):
        page = MockPage(title="Example Domain")

        async def open_home(state, handles):
            await handles["page"].goto(state["test_data"]["base_url"])
            return {"title": await handles["page"].title()}

        final = await run_scenario(
            [open_home],
            {"test_data": {"base_url": "https://example.com"}},
            {"page": page},
        )

        assert page.visited == ["https://example.com"]
        assert final["title"] == "Example Domain"

    @pytest.mark.asyncio
    async def test_none_return_is_empty_delta(self):
        final = await run_scenario([lambda state: None], {"a": 1})

        assert final["a"] == 1
        assert final["test_results"][0].status == StepStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_tagged_variants_use_field_reducer(self):
        final = await run_scenario(
            [lambda state: {"test_data": Append({"b": 2})}],
            {"test_data": {"a": 1}},
        )

        assert final["test_data"] == {"a": 1, "b": 2}
