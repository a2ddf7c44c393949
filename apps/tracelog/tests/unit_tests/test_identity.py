"""
ServiceIdentityResolver 单元测试
"""

from __future__ import annotations

from tracelog.identity import ServiceIdentity, ServiceIdentityResolver
from tracelog.logging.scope import ScopeCorrelator


class TestServiceIdentityResolver:
    """服务身份解析"""

    def test_defaults_when_unset(self) -> None:
        """未设置环境变量时使用占位值"""
        assert ServiceIdentityResolver().resolve() == ServiceIdentity(
            "unknown-service", "unknown-version", "unknown-env"
        )

    def test_round_trip_when_set(self, monkeypatch) -> None:
        """设置后原样返回"""
        monkeypatch.setenv("DD_SERVICE", "test-service")
        monkeypatch.setenv("DD_VERSION", "test-1.0.0")
        monkeypatch.setenv("DD_ENV", "test")
        assert ServiceIdentityResolver().resolve() == ServiceIdentity("test-service", "test-1.0.0", "test")

    def test_empty_values_use_placeholders(self, monkeypatch) -> None:
        """空字符串视为未设置"""
        monkeypatch.setenv("DD_SERVICE", "")
        monkeypatch.setenv("DD_VERSION", "  ")
        monkeypatch.setenv("DD_ENV", "production")
        assert ServiceIdentityResolver().resolve() == ServiceIdentity("unknown-service", "unknown-version", "production")

    def test_re_resolved_on_every_call(self, monkeypatch) -> None:
        """每次解析都读取最新配置"""
        resolver = ServiceIdentityResolver()
        assert resolver.resolve().service == "unknown-service"
        monkeypatch.setenv("DD_SERVICE", "azure-functions-sample")
        assert resolver.resolve().service == "azure-functions-sample"

    def test_env_file_read_once_at_construction(self, monkeypatch, tmp_path) -> None:
        """.env 只在构造时读取，解析时不再访问文件"""
        monkeypatch.chdir(tmp_path)
        env_file = tmp_path / ".env"
        env_file.write_text("DD_SERVICE=from-file\nDD_VERSION=1.2.3\n", encoding="utf-8")
        resolver = ServiceIdentityResolver()
        env_file.write_text("DD_SERVICE=changed\n", encoding="utf-8")
        assert resolver.resolve() == ServiceIdentity("from-file", "1.2.3", "unknown-env")

    def test_environment_wins_over_env_file(self, monkeypatch, tmp_path) -> None:
        """进程环境变量优先于 .env"""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("DD_SERVICE=from-file\n", encoding="utf-8")
        resolver = ServiceIdentityResolver()
        monkeypatch.setenv("DD_SERVICE", "from-environ")
        assert resolver.resolve().service == "from-environ"

    def test_unreadable_env_file_degrades_to_placeholders(self, monkeypatch, tmp_path) -> None:
        """无法解码的 .env 不抛异常，回退到占位值"""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_bytes(b"DD_SERVICE=\xff\xfe\n")
        resolver = ServiceIdentityResolver()
        assert resolver.resolve() == ServiceIdentity()

    def test_failing_settings_source_degrades_to_placeholders(self) -> None:
        """配置源出错时不抛异常"""

        def broken_source():
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")

        resolver = ServiceIdentityResolver(broken_source, env_files=())
        assert resolver.resolve() == ServiceIdentity()

    def test_begin_scope_survives_unreadable_env_file(self, monkeypatch, tmp_path) -> None:
        """作用域打开不受损坏的 .env 影响"""
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_bytes(b"DD_SERVICE=\xff\xfe\n")
        correlator = ScopeCorrelator()
        with correlator.begin_scope() as handle:
            assert handle.fields["dd.service"] == "unknown-service"
