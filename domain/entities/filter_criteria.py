# domain/entities/filter_criteria.py
from pydantic import BaseModel
from enum import Enum


class ActionFilter(str, Enum):
    ALL = "ALL"
    BUY = "BUY"
    SELL = "SELL"


class SessionFilter(str, Enum):
    ALL = "ALL"
    ASIAN = "Asian"
    LONDON = "London"
    NEW_YORK = "New York"


class FilterCriteria(BaseModel):
    """Filtros escolhidos pelo usuário. Estado transitório, nunca persistido."""
    search_term: str = ""
    action_filter: ActionFilter = ActionFilter.ALL
    session_filter: SessionFilter = SessionFilter.ALL

    class Config:
        frozen = True

    @property
    def is_unconstrained(self) -> bool:
        return (
            not self.search_term
            and self.action_filter == ActionFilter.ALL
            and self.session_filter == SessionFilter.ALL
        )
