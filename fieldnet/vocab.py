"""Class-index <-> label mapping supplied by the vocabulary authority."""

from __future__ import annotations

from typing import Iterable, Iterator, List, Sequence

DEFAULT_FIELD_TYPES: tuple[str, ...] = (
    "unknown",
    "first_name", "last_name", "full_name", "email", "phone",
    "linkedin", "github", "portfolio", "website", "twitter_url",
    "address", "city", "state", "zip_code", "country",
    "job_title", "employer_name", "job_start_date", "job_end_date", "work_description", "job_location",
    "institution_name", "degree_type", "field_of_study", "gpa_score", "education_start_date", "education_end_date",
    "gender", "race", "veteran", "disability", "marital_status",
    "salary_current", "salary_expected",
    "work_auth", "sponsorship", "citizenship", "clearance", "legal_age", "tax_id", "criminal_record", "notice_period",
    "referral_source", "cover_letter", "generic_question",
)


class LabelVocabulary:
    """Ordered list of class names; position ``i`` names output unit ``i``."""

    def __init__(self, labels: Iterable[str]) -> None:
        self._labels: List[str] = [str(label) for label in labels]
        if not self._labels:
            raise ValueError("A vocabulary needs at least one label")
        self._index = {label: idx for idx, label in enumerate(self._labels)}
        if len(self._index) != len(self._labels):
            raise ValueError("Vocabulary labels must be unique")

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[str]:
        return iter(self._labels)

    def __contains__(self, label: object) -> bool:
        return label in self._index

    @property
    def labels(self) -> Sequence[str]:
        return tuple(self._labels)

    def index_of(self, label: str) -> int:
        try:
            return self._index[label]
        except KeyError as exc:
            raise KeyError(f"Unknown label: {label!r}") from exc

    def label_of(self, index: int) -> str:
        if 0 <= index < len(self._labels):
            return self._labels[index]
        return f"class_{index}"

    @classmethod
    def default(cls) -> "LabelVocabulary":
        return cls(DEFAULT_FIELD_TYPES)

    @classmethod
    def anonymous(cls, size: int) -> "LabelVocabulary":
        return cls(f"class_{i}" for i in range(size))


__all__ = ["DEFAULT_FIELD_TYPES", "LabelVocabulary"]
