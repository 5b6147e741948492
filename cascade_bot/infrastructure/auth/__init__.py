from .device_code import DeviceCodeTokenSource, DevicePrompt, log_prompt
from .provider import CachedCredentialProvider
from .proxy import ProxyTokenSource
from .store import MemoryTokenStore, process_token_store

__all__ = [
    "CachedCredentialProvider",
    "DeviceCodeTokenSource",
    "DevicePrompt",
    "MemoryTokenStore",
    "ProxyTokenSource",
    "log_prompt",
    "process_token_store",
]
