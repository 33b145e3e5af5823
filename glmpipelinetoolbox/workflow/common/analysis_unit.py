"""Identity of one unit of work at one analysis level."""
from enum import IntEnum

from attrs import define


class AnalysisLevel(IntEnum):
    RUN = 1
    SUBJECT = 2
    GROUP = 3

    @classmethod
    def parse(cls, value: 'int | str | AnalysisLevel') -> 'AnalysisLevel':
        try:
            return cls(int(value))
        except ValueError as error:
            raise ValueError(f'Analysis level must be 1, 2, or 3, got: {value}') from error


@define(frozen=True)
class AnalysisUnit:
    """One run, one subject/session, or one group analysis for a chain of models.

    ``models`` holds the model names from level 1 up to this unit's level, e.g.
    ``('pe_only', 'fixed_effects')`` for a subject-level unit. ``cope`` is the
    level-1 contrast number carried by group-level units.
    """
    level: AnalysisLevel
    subject_id: str | None
    session: str | None
    run_number: int | None = None
    models: tuple[str, ...] = ()
    cope: int | None = None

    @property
    def model_name(self) -> str:
        return self.models[-1]

    def describe(self) -> str:
        parts = [f'level {int(self.level)}']
        if self.subject_id is not None:
            parts.append(f'subject {self.subject_id}')
        if self.session is not None:
            parts.append(f'session {self.session}')
        if self.run_number is not None:
            parts.append(f'run {self.run_number}')
        for level, name in enumerate(self.models, start=1):
            parts.append(f'L{level} model {name}')
        if self.cope is not None:
            parts.append(f'L1 cope {self.cope}')
        return ', '.join(parts)

    def table_name(self) -> str:
        """Cache table name for this unit's level and model chain."""
        name = f'l{int(self.level)}_' + '__'.join(self.models)
        if self.cope is not None:
            name = f'{name}__cope{self.cope}'
        return name
