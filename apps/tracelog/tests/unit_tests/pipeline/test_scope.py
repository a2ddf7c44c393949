"""
作用域与关联单元测试

测试作用域生命周期、嵌套遮蔽、保留字段优先级以及并发隔离。
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from tracelog.exceptions import ScopeOwnershipError
from tracelog.identity import ServiceIdentity
from tracelog.logging.scope import (
    CorrelationRecord,
    ScopeCorrelator,
    ScopeState,
    current_fields,
    open_scope,
    scope_depth,
)
from tracelog.tracing import TraceContextReader, TraceIdentity

CORRELATION_KEYS = ("dd.trace_id", "dd.span_id", "dd.service", "dd.version", "dd.env")


class TestScopeLifetime:
    """作用域生命周期"""

    def test_records_inside_scope_share_correlation_fields(self, factory, correlator, capture_sink) -> None:
        """作用域内的 N 条记录携带相同的关联字段，关闭后不再携带"""
        log = factory.get_logger("orders.http")
        with correlator.begin_scope():
            for index in range(5):
                log.info("record", index=index)
        log.info("after close")

        inside, after = capture_sink.events[:5], capture_sink.events[5]
        snapshots = [{key: event[key] for key in CORRELATION_KEYS} for event in inside]
        assert all(snapshot == snapshots[0] for snapshot in snapshots)
        assert snapshots[0] == {
            "dd.trace_id": "0",
            "dd.span_id": "0",
            "dd.service": "unknown-service",
            "dd.version": "unknown-version",
            "dd.env": "unknown-env",
        }
        assert not any(key in after for key in CORRELATION_KEYS)

    def test_no_trace_gives_sentinel_never_null(self, factory, correlator, capture_sink) -> None:
        """无活动 trace 时写入哨兵值"""
        with correlator.begin_scope():
            factory.get_logger("x").warning("no trace")
        event = capture_sink.events[0]
        assert event["dd.trace_id"] == "0"
        assert event["dd.span_id"] == "0"

    def test_active_trace_is_captured(self, factory, correlator, capture_sink, tracer) -> None:
        """活动 span 的 id 被写入"""
        with tracer.start_as_current_span("request") as span:
            with correlator.begin_scope():
                factory.get_logger("x").info("traced")
            expected = span.get_span_context()
        event = capture_sink.events[0]
        assert event["dd.trace_id"] == format(expected.trace_id, "032x")
        assert event["dd.span_id"] == format(expected.span_id, "016x")

    def test_double_close_is_noop(self) -> None:
        """重复关闭为空操作"""
        handle = open_scope(request_id="r1")
        assert handle.state is ScopeState.OPEN
        handle.close()
        handle.close()
        assert handle.closed
        assert scope_depth() == 0

    def test_scope_closes_on_exception(self, correlator) -> None:
        """工作单元失败时作用域仍然关闭"""
        with pytest.raises(RuntimeError):
            with correlator.begin_scope(request_id="r1"):
                assert scope_depth() == 1
                raise RuntimeError("boom")
        assert scope_depth() == 0
        assert current_fields() == {}

    def test_out_of_order_close_removes_own_frame(self) -> None:
        """非 LIFO 关闭只移除自身"""
        outer = open_scope(a="1")
        inner = open_scope(b="2")
        outer.close()
        assert current_fields() == {"b": "2"}
        inner.close()
        assert scope_depth() == 0

    def test_close_from_foreign_thread_rejected(self) -> None:
        """其他线程关闭作用域时报错，作用域保持打开"""
        handle = open_scope(request_id="r1")
        with ThreadPoolExecutor(max_workers=1) as pool:
            with pytest.raises(ScopeOwnershipError):
                pool.submit(handle.close).result()
        assert handle.state is ScopeState.OPEN
        assert current_fields() == {"request_id": "r1"}
        handle.close()
        assert scope_depth() == 0


class TestNesting:
    """嵌套作用域"""

    def test_union_with_inner_shadowing(self, factory, capture_sink) -> None:
        """内层作用域覆盖同名字段，关闭后恢复外层"""
        log = factory.get_logger("x")
        with open_scope({"request_id": "outer", "tenant": "acme"}):
            with open_scope(request_id="inner", user_id="u1"):
                log.info("both")
            log.info("outer only")

        both, outer_only = capture_sink.events
        assert both["request_id"] == "inner"
        assert both["tenant"] == "acme"
        assert both["user_id"] == "u1"
        assert outer_only["request_id"] == "outer"
        assert "user_id" not in outer_only

    def test_correlation_scope_combined_with_request_scope(self, factory, correlator, capture_sink) -> None:
        """关联作用域与请求作用域组合"""
        with correlator.begin_scope():
            with open_scope(RequestId="ai-request-123", OperationId="ai-operation-456"):
                factory.get_logger("x").info("Combined logging test: Method={method}", method="GET")
        event = capture_sink.events[0]
        assert event["RequestId"] == "ai-request-123"
        assert event["dd.service"] == "unknown-service"
        assert event["message"] == "Combined logging test: Method=GET"

    def test_call_keywords_win_over_scope_fields(self, factory, capture_sink) -> None:
        """调用关键字优先于作用域字段"""
        with open_scope(status="scoped"):
            factory.get_logger("x").info("m", status="explicit")
        assert capture_sink.events[0]["status"] == "explicit"

    def test_scope_field_order_is_outer_first(self) -> None:
        """字段按外层优先的顺序合并"""
        with open_scope(a="1"), open_scope(b="2"), open_scope(a="3"):
            assert list(current_fields().items()) == [("a", "3"), ("b", "2")]


class TestCorrelationRecord:
    """关联记录"""

    def test_reserved_fields_are_authoritative(self) -> None:
        """调用方字段不能覆盖保留字段"""
        record = CorrelationRecord(
            trace=TraceIdentity("abc", "def"),
            service=ServiceIdentity("svc", "1.0", "prod"),
            extra={"dd.trace_id": "spoofed", "trace_id": "kept", "request_id": "r1"},
        )
        fields = record.as_fields()
        assert fields["dd.trace_id"] == "abc"
        assert fields["trace_id"] == "kept"
        assert list(fields)[:5] == list(CORRELATION_KEYS)
        assert list(fields)[5:] == ["trace_id", "request_id"]

    def test_custom_prefix(self) -> None:
        """字段前缀可配置"""
        record = CorrelationRecord(TraceIdentity("1", "2"), ServiceIdentity(), prefix="corr.")
        assert record.reserved_keys == ("corr.trace_id", "corr.span_id", "corr.service", "corr.version", "corr.env")

    def test_begin_scope_merges_identity_and_extras(self, monkeypatch) -> None:
        """begin_scope 合并 trace、服务身份与调用方字段"""
        monkeypatch.setenv("DD_SERVICE", "test-service")
        monkeypatch.setenv("DD_VERSION", "test-1.0.0")
        monkeypatch.setenv("DD_ENV", "test")
        correlator = ScopeCorrelator(TraceContextReader(fallback_trace_id="test-trace-id"))
        with correlator.begin_scope({"RequestId": "r1"}, **{"dd.env": "spoofed"}) as handle:
            assert dict(handle.fields) == {
                "dd.trace_id": "test-trace-id",
                "dd.span_id": "test-trace-id",
                "dd.service": "test-service",
                "dd.version": "test-1.0.0",
                "dd.env": "test",
                "RequestId": "r1",
            }

    def test_handle_fields_are_read_only(self, correlator) -> None:
        """作用域字段只读"""
        with correlator.begin_scope() as handle:
            with pytest.raises(TypeError):
                handle.fields["dd.trace_id"] = "x"  # type: ignore[index]


class TestConcurrency:
    """并发工作单元隔离"""

    def test_threads_never_observe_each_other(self, factory, correlator, capture_sink) -> None:
        """10 个并行线程的作用域互不可见"""
        log = factory.get_logger("worker")

        def unit_of_work(index: int) -> None:
            with correlator.begin_scope(unit=str(index)):
                for step in range(20):
                    log.info("step", step=step, expected=str(index))

        with ThreadPoolExecutor(max_workers=10) as pool:
            list(pool.map(unit_of_work, range(10)))

        assert len(capture_sink.events) == 200
        for event in capture_sink.events:
            assert event["unit"] == event["expected"]

    @pytest.mark.asyncio
    async def test_tasks_never_observe_each_other(self, factory, correlator, capture_sink) -> None:
        """10 个并发任务的作用域互不可见"""
        log = factory.get_logger("worker")

        async def unit_of_work(index: int) -> None:
            with correlator.begin_scope(unit=str(index)):
                for step in range(5):
                    log.info("step", step=step, expected=str(index))
                    await asyncio.sleep(0)

        await asyncio.gather(*(unit_of_work(i) for i in range(10)))

        assert len(capture_sink.events) == 50
        for event in capture_sink.events:
            assert event["unit"] == event["expected"]
        assert scope_depth() == 0

    @pytest.mark.asyncio
    async def test_cancelled_task_closes_scope(self, correlator) -> None:
        """任务取消时作用域仍然关闭"""
        started = asyncio.Event()
        observed: list[int] = []

        async def unit_of_work() -> None:
            try:
                with correlator.begin_scope():
                    started.set()
                    await asyncio.sleep(10)
            finally:
                observed.append(scope_depth())

        task = asyncio.create_task(unit_of_work())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert observed == [0]

    @pytest.mark.asyncio
    async def test_child_task_inherits_parent_scope(self, correlator) -> None:
        """子任务继承父作用域，但自身作用域不回流"""
        with open_scope(parent="p"):

            async def child() -> dict:
                with open_scope(child="c"):
                    return current_fields()

            seen = await asyncio.create_task(child())
            assert seen == {"parent": "p", "child": "c"}
            assert current_fields() == {"parent": "p"}
