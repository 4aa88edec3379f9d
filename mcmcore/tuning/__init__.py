from mcmcore.tuning.adapters import AdaptationRecord, AdapterBase, AdaptiveTuner, WindowedScaleTuner

__all__ = [
    "AdaptationRecord",
    "AdapterBase",
    "AdaptiveTuner",
    "WindowedScaleTuner",
]
