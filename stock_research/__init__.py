"""
Deep Stock Research: generated long-form investment memos.

Import `ResearchOrchestrator` directly from here to simplify access:

```python
import asyncio

from stock_research import ResearchOrchestrator, Settings

orchestrator = ResearchOrchestrator.from_settings(Settings.from_env())
state = asyncio.run(orchestrator.research("AAPL"))
```
"""

from .config import ConfigurationError, Settings  # noqa: F401
from .credential_store import Credential, CredentialStore, JsonFileStorage  # noqa: F401
from .orchestrator import ResearchOrchestrator  # noqa: F401
from .rendering import Heading, InlineRun, Paragraph, UnorderedList, format_blocks, render  # noqa: F401
from .research_prompts import build_prompt  # noqa: F401
from .research_state import ErrorKind, Failed, Idle, InFlight, RequestState, Succeeded, Validating  # noqa: F401

__all__ = [
    "ConfigurationError",
    "Credential",
    "CredentialStore",
    "ErrorKind",
    "Failed",
    "Heading",
    "Idle",
    "InFlight",
    "InlineRun",
    "JsonFileStorage",
    "Paragraph",
    "RequestState",
    "ResearchOrchestrator",
    "Settings",
    "Succeeded",
    "UnorderedList",
    "Validating",
    "build_prompt",
    "format_blocks",
    "render",
]
