"""Configuration and context manager for cliqueflow inference."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class InferenceConfig:
    """Settings shared by every stage of junction-tree inference.

    Attributes:
        tolerance: Absolute tolerance for normalization and consistency
            checks (conditional table rows, separator agreement).
        validate: If True, ``process`` also checks that every extracted
            clique is complete in the chordal graph and that the clique
            tree satisfies the running intersection property.
        max_workers: Number of threads used to propagate independent
            connected components.  ``None`` or ``1`` runs serially.
    """

    tolerance: float = 1e-9
    validate: bool = False
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        if self.tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(
                f"max_workers must be at least 1, got {self.max_workers}"
            )


DEFAULT_CONFIG = InferenceConfig()


class InferenceContext:
    """Context manager that sets the default :class:`InferenceConfig`.

    Any :class:`~cliqueflow.inference.junction_tree.MarginCalculator`
    created without an explicit config inside the ``with`` block uses the
    context's config.

    Example:
        >>> with InferenceContext(InferenceConfig(validate=True)):
        ...     calc = MarginCalculator(cardinalities, tables)
        ...     calc.process(adjacency)
    """

    _active_context: Optional['InferenceContext'] = None

    def __init__(self, config: Optional[InferenceConfig] = None, **overrides):
        """Initialize a new context.

        Args:
            config: Base configuration.  Defaults to the currently active one.
            **overrides: Field values replacing those of *config*.
        """
        base = config if config is not None else self.current_config()
        if overrides:
            fields = {
                "tolerance": base.tolerance,
                "validate": base.validate,
                "max_workers": base.max_workers,
            }
            fields.update(overrides)
            base = InferenceConfig(**fields)
        self.config: InferenceConfig = base
        self._parent_context: Optional['InferenceContext'] = None

    def __enter__(self) -> 'InferenceContext':
        self._parent_context = InferenceContext._active_context
        InferenceContext._active_context = self
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        InferenceContext._active_context = self._parent_context
        return False

    @classmethod
    def get_active_context(cls) -> Optional['InferenceContext']:
        """Return the innermost active context, or None."""
        return cls._active_context

    @classmethod
    def current_config(cls) -> InferenceConfig:
        """Return the active context's config, or the package default."""
        if cls._active_context is None:
            return DEFAULT_CONFIG
        return cls._active_context.config
