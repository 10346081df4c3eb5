from taskfirst.ai.config import AIReportConfig
from taskfirst.ai.report import OFFLINE_MESSAGE, build_prompt, get_smart_report

__all__ = ["AIReportConfig", "OFFLINE_MESSAGE", "build_prompt", "get_smart_report"]
