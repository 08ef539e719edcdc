from typing import Iterable, Protocol, runtime_checkable

from django.db import models
from django.db.models import QuerySet

from .schema import Document


@runtime_checkable
class Source(Protocol):
    """Base source for providing documents to an engine."""

    @property
    def source_id(self) -> str:
        """Get unique identifier for this source."""
        return self.__class__.__name__

    def get_documents(self) -> Iterable[Document]:
        """Get all documents from this source."""
        ...


class ModelSource(Source):
    """Source for Django models with queryset support.

    Each model instance becomes one Document: its display name comes from
    name_field, its content is content_fields joined by blank lines so every
    field starts a new paragraph.
    """

    def __init__(
        self,
        queryset: QuerySet | None = None,
        model: type[models.Model] | None = None,
        name_field: str = "name",
        content_fields: list[str] | None = None,
    ):
        if queryset is not None:
            self.queryset = queryset
            self.model = queryset.model
        elif model is not None:
            self.model = model
            self.queryset = model.objects.all()
        else:
            raise ValueError("Either queryset or model must be provided")

        self.name_field = name_field
        self.content_fields = content_fields or ["content"]

    @property
    def source_id(self) -> str:
        """Use Django model label as source ID."""
        return self.model._meta.label

    def _get_field_value(self, obj: models.Model, field_name: str) -> str | None:
        field_value = getattr(obj, field_name)
        # Handle callable fields (methods, properties)
        if callable(field_value):
            field_value = field_value()

        if field_value is None:
            return None

        return field_value if isinstance(field_value, str) else str(field_value)

    def get_name(self, obj: models.Model) -> str:
        return self._get_field_value(obj, self.name_field) or str(obj)

    def get_content(self, obj: models.Model) -> str:
        """Extract text content from model instance."""
        content = []
        for field_name in self.content_fields:
            field_value = self._get_field_value(obj, field_name)
            if field_value:
                content.append(field_value)
        return "\n\n".join(content)

    def get_document_id(self, obj: models.Model) -> str:
        return f"{self.source_id}:{obj.pk}"

    def object_to_document(self, obj: models.Model) -> Document:
        if type(obj) is not self.model:
            raise ValueError("Object does not belong to this source")

        return Document(
            id=self.get_document_id(obj),
            name=self.get_name(obj),
            content=self.get_content(obj),
        )

    def get_documents(self) -> Iterable[Document]:
        """Convert the queryset to documents."""
        for obj in self.queryset.all():
            yield self.object_to_document(obj)
