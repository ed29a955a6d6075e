from botyard.core.exceptions import (
    BotyardError as BotyardError,
    BundleNotFoundError as BundleNotFoundError,
    ConfigurationError as ConfigurationError,
    NoEntryPointError as NoEntryPointError,
    PathRejectedError as PathRejectedError,
    SandboxRuntimeError as SandboxRuntimeError,
)
from botyard.core.types import (
    BotStatus as BotStatus,
    InstanceState as InstanceState,
    StartResult as StartResult,
)
