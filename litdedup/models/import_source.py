"""Import source variants produced by the import source reader."""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field

from litdedup.models.record import Record


class SourceKind(str, Enum):
    ID_LIST = "id-list"
    TABULAR = "tabular"


class IdType(str, Enum):
    PMID = "pmid"
    DOI = "doi"


class IdListSource(BaseModel):
    """Catalog identifiers, one per line, resolved through the catalog"""

    kind: Literal[SourceKind.ID_LIST] = SourceKind.ID_LIST
    id_type: IdType
    ids: List[str] = Field(default_factory=list)
    file_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self.ids)


class TabularSource(BaseModel):
    """Records already carried by the source (CSV/TSV rows)"""

    kind: Literal[SourceKind.TABULAR] = SourceKind.TABULAR
    records: List[Record] = Field(default_factory=list)
    file_name: Optional[str] = None

    def __len__(self) -> int:
        return len(self.records)


ImportSource = Annotated[
    Union[IdListSource, TabularSource], Field(discriminator="kind")
]
