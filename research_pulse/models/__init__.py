from research_pulse.models.article import ArticleRow
from research_pulse.models.domain import Article, Candidate, Source

__all__ = ["Article", "ArticleRow", "Candidate", "Source"]
