from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from omegaconf import OmegaConf

# End-of-transmission control character; wraps every corpus entry by default.
EOF = "\x04"


@dataclass
class TokenizerConfig:
    """Training configuration.

    ``min_weight``, ``max_length`` and ``max_iterations`` are the defaults of
    ``find_next_merge`` / ``merge_until``; per-call arguments override them.
    """

    strategy: str = "incremental"  # 'incremental' or 'rescan'
    sentinel: Optional[str] = EOF
    min_weight: int = 2
    max_length: Optional[int] = None
    max_iterations: Optional[int] = None
    # SQLite database path; None keeps the corpus in memory
    store_path: Optional[str] = None
    # append-only merge log written during training
    merge_log_path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.strategy not in ("incremental", "rescan"):
            raise ValueError(f"Unknown strategy={self.strategy}. Use incremental|rescan.")
        if self.sentinel is not None and len(self.sentinel) != 1:
            raise ValueError("sentinel must be a single character or None")
        if self.min_weight < 1:
            raise ValueError("min_weight must be >= 1")
        if self.max_length is not None and self.max_length < 2:
            raise ValueError("max_length must be >= 2 (a merge joins two tokens)")
        if self.max_iterations is not None and self.max_iterations < 0:
            raise ValueError("max_iterations must be >= 0")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TokenizerConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**d)

    @classmethod
    def load(cls, path: str | Path | None = None, overrides: Optional[Sequence[str]] = None) -> "TokenizerConfig":
        """Build a config from a YAML file and ``key=value`` overrides.

        Both sources are merged onto the structured defaults, so types are
        checked by OmegaConf before ``__post_init__`` validates values.
        """

        cfg = OmegaConf.structured(cls)
        if path is not None:
            cfg = OmegaConf.merge(cfg, OmegaConf.load(str(path)))
        if overrides:
            cfg = OmegaConf.merge(cfg, OmegaConf.from_dotlist(list(overrides)))
        return cls.from_dict(OmegaConf.to_container(cfg, resolve=True))
