"""Run configuration: browser, capture timings, execution pacing, output paths."""
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

DEFAULT_URL = "https://www.stage.adobe.com/cc-shared/fragments/uar/brand-concierge/brand-concierge"
DEFAULT_PRODUCT_DATA_URL = (
    "https://raw.githubusercontent.com/adobecom/milo/bc-uar/libs/blocks/bc-uar-metadata/product-data.json"
)
DEFAULT_USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BrowserConfig:
    headless: bool = True
    slow_mo: Optional[int] = None
    viewport: dict = field(default_factory=lambda: {"width": 1280, "height": 720})
    user_agent: str = DEFAULT_USER_AGENT
    launch_args: list[str] = field(default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"])
    block_resources: bool = False  # abort image/media/font requests


@dataclass
class CaptureSettings:
    url: str = DEFAULT_URL
    navigation_timeout_ms: int = 30000
    locate_timeout_ms: int = 5000  # per candidate selector
    input_ready_timeout_ms: int = 15000
    post_input_wait_ms: int = 1000
    type_delay_ms: int = 50
    max_attempts: int = 60
    poll_interval_ms: int = 2000
    settle_ms: int = 2000
    delay_between_questions_ms: int = 8000

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ExecutionConfig:
    concurrency: int = 3
    batch_pause_ms: int = 1000
    sequential_batch_size: int = 5
    sequential_batch_pause_ms: int = 5000
    checkpoint_every: int = 5
    question_timeout_s: float = 300.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProductSource:
    url: str = DEFAULT_PRODUCT_DATA_URL
    local_path: Path = Path("data/products/product-data.json")
    timeout_s: float = 30.0


@dataclass
class OutputConfig:
    base_dir: Path = Path("data")
    reports_dir: Path = Path("reports")

    @property
    def results_dir(self) -> Path:
        return self.base_dir / "results"

    @property
    def questions_dir(self) -> Path:
        return self.base_dir / "questions"

    @property
    def screenshots_dir(self) -> Path:
        return self.results_dir / "debug-screenshots"


@dataclass
class AppConfig:
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    capture: CaptureSettings = field(default_factory=CaptureSettings)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    products: ProductSource = field(default_factory=ProductSource)
    output: OutputConfig = field(default_factory=OutputConfig)
    targets: dict = field(default_factory=lambda: {"relevance": 4.0, "brand_loyalty": 4.2, "coverage": 3.8})

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Defaults, overridden by CONCIERGE_* environment variables."""
        cfg = cls()
        url = (os.environ.get("CONCIERGE_URL") or "").strip()
        if url:
            cfg.capture.url = url
        cfg.browser.headless = _env_flag("CONCIERGE_HEADLESS", cfg.browser.headless)
        data_url = (os.environ.get("CONCIERGE_PRODUCT_DATA_URL") or "").strip()
        if data_url:
            cfg.products.url = data_url
        out = (os.environ.get("CONCIERGE_OUTPUT_DIR") or "").strip()
        if out:
            cfg.output.base_dir = Path(out)
            cfg.output.reports_dir = Path(out) / "reports"
            cfg.products.local_path = Path(out) / "products" / "product-data.json"
        return cfg
