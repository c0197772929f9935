"""
@PURPOSE: 测试脚手架配置管理，使用Pydantic Settings管理配置，支持多环境和从YAML加载
@OUTLINE:
  - class McpConfig: MCP 测试数据服务配置
  - class BrowserConfig: 浏览器配置
  - class TestRunConfig: 测试执行配置
  - class LoggingConfig: 日志配置
  - class Settings: 应用配置主类
  - def load_environment_config(): 加载环境配置
  - def create_settings(): 创建配置实例
@GOTCHAS:
  - MCP_CLIENT_SECRET 等敏感信息应存储在.env文件中
  - 环境配置文件优先级: YAML > 环境变量 > 默认值
@DEPENDENCIES:
  - 外部: pydantic, pydantic_settings, pyyaml
@RELATED: __init__.py, environments/*.yaml
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ========== 子配置类 ==========

class McpConfig(BaseSettings):
    """MCP 测试数据服务配置.

    Attributes:
        test_data_endpoint: 测试数据 API 根地址
        auth_endpoint: OAuth2 token 地址
        client_id: 客户端 ID
        client_secret: 客户端密钥
        scope: 授权范围
        test_data_path: 测试数据资源路径
        configs_path: 配置资源路径
        environments_path: 环境资源路径
        timeout: 请求超时（秒）
        retry_attempts: 网络错误重试次数
        retry_delay: 重试间隔（秒）
    """

    model_config = SettingsConfigDict(env_prefix="MCP_", extra="ignore")

    test_data_endpoint: str = Field(
        default="https://api.mcp.microsoft.com/test-data", description="测试数据 API 根地址"
    )
    auth_endpoint: str = Field(
        default="https://login.microsoftonline.com/common/oauth2/v2.0/token",
        description="OAuth2 token 地址",
    )
    client_id: str = Field(default="", description="客户端 ID")
    client_secret: str = Field(default="", description="客户端密钥")
    scope: str = Field(default="https://api.mcp.microsoft.com/.default", description="授权范围")
    test_data_path: str = Field(default="/test-data", description="测试数据资源路径")
    configs_path: str = Field(default="/configs", description="配置资源路径")
    environments_path: str = Field(default="/environments", description="环境资源路径")
    timeout: float = Field(default=30.0, gt=0, description="请求超时（秒）")
    retry_attempts: int = Field(default=3, ge=1, description="网络错误重试次数")
    retry_delay: float = Field(default=1.0, ge=0, description="重试间隔（秒）")


class BrowserConfig(BaseSettings):
    """浏览器配置.

    Attributes:
        default_type: 默认浏览器类型
        headless: 无头模式
        slow_mo: 慢速模式（毫秒）
        timeout: 默认超时（毫秒）
        viewport: 视口大小
        launch_args: chromium 启动参数
        video_dir: 录屏目录
    """

    model_config = SettingsConfigDict(env_prefix="BROWSER_", extra="ignore")

    default_type: str = Field(default="chromium", description="默认浏览器类型")
    headless: bool = Field(default=True, description="无头模式")
    slow_mo: int = Field(default=0, ge=0, description="慢速模式（毫秒）")
    timeout: int = Field(default=30000, description="默认超时（毫秒）")
    viewport: Dict[str, int] = Field(
        default={"width": 1920, "height": 1080},
        description="视口大小"
    )
    launch_args: List[str] = Field(
        default=["--disable-dev-shm-usage", "--no-sandbox"],
        description="chromium 启动参数",
    )
    video_dir: Optional[str] = Field(default="test-results/videos", description="录屏目录")


class TestRunConfig(BaseSettings):
    """测试执行配置.

    Attributes:
        base_url: 被测应用地址
        data_key: 工作流默认加载的测试数据 key
        expected_title: 默认检查的页面标题片段
        screenshot_dir: 截图目录
    """

    __test__ = False

    model_config = SettingsConfigDict(extra="ignore")

    base_url: str = Field(default="https://example.com", description="被测应用地址")
    data_key: str = Field(default="test-config", description="默认测试数据 key")
    expected_title: str = Field(default="Example", description="页面标题片段")
    screenshot_dir: str = Field(default="test-results", description="截图目录")


class LoggingConfig(BaseSettings):
    """日志配置.

    Attributes:
        level: 日志级别
        format: 日志格式（detailed|json|simple）
        output: 输出目标列表
        file_path: 文件路径
        rotation: 轮转大小
        retention: 保留时间
    """

    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: str = Field(default="INFO", description="日志级别")
    format: str = Field(default="detailed", description="日志格式")
    output: List[str] = Field(default=["console"], description="输出目标")
    file_path: str = Field(default="test-results/logs/testforge.log", description="文件路径")
    rotation: str = Field(default="10 MB", description="轮转大小")
    retention: str = Field(default="7 days", description="保留时间")


# ========== 主配置类 ==========

class Settings(BaseSettings):
    """应用配置主类.

    从环境变量、.env文件和YAML配置文件加载配置。

    Attributes:
        environment: 运行环境
        debug: 调试模式
        mcp: MCP 配置
        browser: 浏览器配置
        test_run: 测试执行配置
        logging: 日志配置

    Examples:
        >>> from testforge.config import settings
        >>> settings.environment
        'staging'
        >>> settings.get_url("/login")
        'https://example.com/login'
    """

    environment: str = Field(default="staging", description="运行环境")
    debug: bool = Field(default=False, description="调试模式")

    mcp: McpConfig = Field(default_factory=McpConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    test_run: TestRunConfig = Field(default_factory=TestRunConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",  # 支持 BROWSER__HEADLESS=false
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """验证环境名称."""
        valid_envs = ["development", "staging", "production"]
        if v not in valid_envs:
            raise ValueError(f"环境必须是: {valid_envs}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_url(self, path: str = "") -> str:
        """拼接被测应用地址.

        Args:
            path: 相对路径, 可不带前导斜杠

        Returns:
            完整URL
        """
        base = self.test_run.base_url.rstrip("/")
        return f"{base}{path if path.startswith('/') else '/' + path}"

    def get_api_url(self, path: str = "") -> str:
        """拼接被测应用的 API 地址, localhost 指向本地 3000 端口."""
        if "localhost" in self.test_run.base_url:
            api_base = "http://localhost:3000/api"
        else:
            api_base = f"{self.test_run.base_url.rstrip('/')}/api"
        return f"{api_base}{path if path.startswith('/') else '/' + path}"

    def get_absolute_path(self, relative_path: str) -> Path:
        """将相对路径转换为基于当前工作目录的绝对路径.

        Args:
            relative_path: 相对路径

        Returns:
            绝对路径
        """
        path = Path(relative_path)
        if path.is_absolute():
            return path
        return Path.cwd() / path

    def ensure_directories(self) -> None:
        """确保截图/录屏/日志目录存在."""
        dirs = [self.test_run.screenshot_dir, str(Path(self.logging.file_path).parent)]
        if self.browser.video_dir:
            dirs.append(self.browser.video_dir)
        for dir_path in dirs:
            self.get_absolute_path(dir_path).mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（隐藏敏感信息）."""
        data = self.model_dump()
        if data["mcp"].get("client_secret"):
            data["mcp"]["client_secret"] = "***"
        return data


# ========== 配置加载 ==========

def load_environment_config(env: str = "staging") -> Dict[str, Any]:
    """从YAML文件加载环境配置，支持别名引用."""

    config_dir = Path(__file__).parent / "environments"
    target_file = config_dir / f"{env}.yaml"

    def _load(file_path: Path, seen: set[Path]) -> Dict[str, Any]:
        if file_path in seen:
            raise ValueError(f"检测到环境配置的循环引用: {file_path}")
        seen.add(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"环境配置文件不存在: {file_path}")

        with file_path.open("r", encoding="utf-8") as handle:
            content = yaml.safe_load(handle)

        if content is None:
            return {}

        if isinstance(content, str):
            alias = content.strip()
            if not alias:
                raise ValueError(f"环境配置别名不能为空: {file_path}")

            if alias.endswith((".yaml", ".yml")):
                alias_file = file_path.parent / alias
            else:
                alias_file = file_path.parent / f"{alias}.yaml"

            return _load(alias_file, seen)

        if not isinstance(content, dict):
            raise TypeError(
                f"环境配置 {file_path} 必须是字典或别名字符串, 当前类型: {type(content).__name__}",
            )

        return content

    return _load(target_file, set())


def create_settings(env: Optional[str] = None) -> Settings:
    """创建配置实例.

    Args:
        env: 环境名称，如果为None则从环境变量获取

    Returns:
        配置实例
    """
    if env is None:
        env = os.getenv("ENVIRONMENT", "staging")

    yaml_config = load_environment_config(env)

    return Settings(
        environment=env,
        mcp=McpConfig(**yaml_config.get("mcp", {})),
        browser=BrowserConfig(**yaml_config.get("browser", {})),
        test_run=TestRunConfig(**yaml_config.get("test_run", {})),
        logging=LoggingConfig(**yaml_config.get("logging", {})),
    )


# ========== 全局配置实例 ==========

_env = os.getenv("ENVIRONMENT", "staging")
settings = create_settings(_env)
