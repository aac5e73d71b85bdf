from dataclasses import dataclass


@dataclass
class DbConfig:
    id_column: str = "id"
    max_identifier_length: int = 64

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.id_column:
            raise ValueError("id_column cannot be empty")
        if self.max_identifier_length <= 0:
            raise ValueError("max_identifier_length must be > 0")


@dataclass
class ExecutorConfig:
    emit_metrics: bool = True
