"""Typed model of a linked data API response.

The linked data API returns RDF/JSON documents mapping subject URLs to
properties, where each property holds a list of typed values::

    {
        "http://abc.myreadinglists.org/lists/1234": {
            "http://purl.org/vocab/resourcelist/schema#usedBy": [
                {"type": "uri", "value": "http://abc.myreadinglists.org/modules/x"}
            ],
            "http://purl.org/dc/terms/title": [
                {"type": "literal", "value": "Reading list"}
            ]
        },
        ...
    }

The first subject is the requested object. Further subjects are related
objects returned inline with it.
"""

from collections.abc import Iterator, Mapping
from datetime import date, datetime
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field


RDF_SEQUENCE_PREFIX = "http://www.w3.org/1999/02/22-rdf-syntax-ns#_"

VALUE_TYPE_URI = "uri"
VALUE_TYPE_LITERAL = "literal"

TRUE_LITERALS = frozenset({"true", "1", "yes"})
FALSE_LITERALS = frozenset({"false", "0", "no"})


class LinkedDataValue(BaseModel):
    """A single typed property value."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str = Field(default=VALUE_TYPE_LITERAL, description="uri, literal or bnode")
    value: str
    datatype: str | None = None
    lang: str | None = None

    @property
    def is_uri(self) -> bool:
        """Check if the value is a non-empty URI reference."""
        return self.type == VALUE_TYPE_URI and bool(self.value)


def _path(url: str) -> str | None:
    try:
        return urlparse(url).path
    except ValueError:
        return None


class LinkedDataDocument(Mapping[str, dict[str, tuple[LinkedDataValue, ...]]]):
    """Mapping of subject URL to property URI to typed values.

    The raw parsed JSON is retained so that individual subjects can be
    written back to the cache unchanged.
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        """Initialize the document from parsed JSON.

        Malformed subjects, properties and values are ignored.

        Args:
            data: Parsed JSON from the linked data API.
        """
        self._raw: dict[str, Any] = {}
        self._subjects: dict[str, dict[str, tuple[LinkedDataValue, ...]]] = {}
        for subject, properties in (data or {}).items():
            if not isinstance(properties, Mapping):
                continue
            self._raw[subject] = properties
            self._subjects[subject] = {
                predicate: self._parse_values(values)
                for predicate, values in properties.items()
            }

    @staticmethod
    def _parse_values(values: Any) -> tuple[LinkedDataValue, ...]:
        if isinstance(values, Mapping):
            values = [values]
        if not isinstance(values, list):
            return ()
        parsed = []
        for value in values:
            if isinstance(value, Mapping) and value.get("value") is not None:
                parsed.append(
                    LinkedDataValue.model_validate(
                        {**value, "value": str(value["value"])}
                    )
                )
        return tuple(parsed)

    def __getitem__(self, subject: str) -> dict[str, tuple[LinkedDataValue, ...]]:
        return self._subjects[subject]

    def __iter__(self) -> Iterator[str]:
        return iter(self._subjects)

    def __len__(self) -> int:
        return len(self._subjects)

    @property
    def raw(self) -> dict[str, Any]:
        """Get the parsed JSON the document was built from."""
        return self._raw

    def raw_subject(self, subject: str) -> dict[str, Any]:
        """Return a single-subject document in raw JSON form.

        Args:
            subject: Subject URL.

        Returns:
            Parsed JSON containing only the given subject.
        """
        return {subject: self._raw[subject]}

    def find(self, url: str) -> str | None:
        """Find the subject matching a URL, ignoring host and scheme.

        The URL used to retrieve a document may use a tenancy alias host, so
        subjects are matched on their path only.

        Args:
            url: URL of the object.

        Returns:
            The matching subject key, or None.
        """
        path = _path(url)
        if path is None:
            return None
        for subject in self._subjects:
            if _path(subject) == path:
                return subject
        return None

    def get_values(
        self, subject: str, predicate: str
    ) -> tuple[LinkedDataValue, ...]:
        """Return all values of a property, empty if absent."""
        return self._subjects.get(subject, {}).get(predicate, ())

    def get_value(
        self, subject: str, predicate: str, default: str | None = None
    ) -> str | None:
        """Return the first value of a property.

        Args:
            subject: Subject URL.
            predicate: Property URI.
            default: Value returned if the property is absent.

        Returns:
            The first property value as a string.
        """
        values = self.get_values(subject, predicate)
        return values[0].value if values else default

    def get_date(self, subject: str, predicate: str) -> date | datetime | None:
        """Return the first value of a property as a date or datetime.

        Returns:
            A datetime if the value carries a time, a date if not, or None
            if the property is absent or not an ISO 8601 value.
        """
        text = self.get_value(subject, predicate)
        if not text:
            return None
        try:
            if "T" in text or " " in text:
                return datetime.fromisoformat(text.replace("Z", "+00:00"))
            return date.fromisoformat(text)
        except ValueError:
            return None

    def get_boolean(self, subject: str, predicate: str) -> bool | None:
        """Return the first value of a property as a boolean."""
        text = self.get_value(subject, predicate)
        if text is None:
            return None
        text = text.strip().lower()
        if text in TRUE_LITERALS:
            return True
        if text in FALSE_LITERALS:
            return False
        return None

    def sequence(self, subject: str) -> list[LinkedDataValue]:
        """Return the ordered members of an RDF sequence.

        Members are the values of the rdf:_1, rdf:_2, ... properties,
        ordered by their index.
        """
        members: list[tuple[int, LinkedDataValue]] = []
        for predicate, values in self._subjects.get(subject, {}).items():
            if not predicate.startswith(RDF_SEQUENCE_PREFIX):
                continue
            index = predicate[len(RDF_SEQUENCE_PREFIX) :]
            if not index.isdigit():
                continue
            members.extend((int(index), value) for value in values)
        members.sort(key=lambda member: member[0])
        return [value for _, value in members]

    def references(self, subject: str | None = None) -> list[str]:
        """Return the distinct URI values of the document.

        Only values explicitly typed as uri are returned.

        Args:
            subject: If given, scan only this subject, otherwise all subjects.

        Returns:
            URIs in first-seen order.
        """
        subjects = [subject] if subject is not None else list(self._subjects)
        seen: dict[str, None] = {}
        for s in subjects:
            for values in self._subjects.get(s, {}).values():
                for value in values:
                    if value.is_uri:
                        seen.setdefault(value.value, None)
        return list(seen)
