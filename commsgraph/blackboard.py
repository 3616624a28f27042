"""
Evidence object model consumed by the communications graph.

Analysis modules post their findings on a "blackboard": typed artifacts
attached to a piece of content, each carrying typed attributes. The
communications graph only needs a small slice of that model:

    - content and data sources (a data source belongs to one device)
    - artifacts of the communication types plus the TSK_ACCOUNT marker
    - text attributes for folder paths, account types and account ids

The module-level functions take an open connection and are meant to be called
inside a CaseDatabase guard; Blackboard wraps them in guards of its own.
"""

import sqlite3
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, Optional, Sequence, Tuple
import logging

from commsgraph.database import CaseDatabase

logger = logging.getLogger(__name__)


class ArtifactType(IntEnum):
    """Blackboard artifact types used by the communications graph."""

    TSK_EMAIL_MSG = 13
    TSK_CONTACT = 23
    TSK_MESSAGE = 24
    TSK_CALLLOG = 25
    TSK_ACCOUNT = 39

    @property
    def display_name(self) -> str:
        return _ARTIFACT_DISPLAY_NAMES[self]


_ARTIFACT_DISPLAY_NAMES = {
    ArtifactType.TSK_EMAIL_MSG: "E-Mail Messages",
    ArtifactType.TSK_CONTACT: "Contacts",
    ArtifactType.TSK_MESSAGE: "Messages",
    ArtifactType.TSK_CALLLOG: "Call Logs",
    ArtifactType.TSK_ACCOUNT: "Accounts",
}


class AttributeType(IntEnum):
    """Blackboard attribute types used by the communications graph."""

    TSK_PATH = 8
    TSK_ID = 110
    TSK_ACCOUNT_TYPE = 121


class ReviewStatus(IntEnum):
    APPROVED = 1
    REJECTED = 2
    UNDECIDED = 3


# Artifacts that originate a communication between accounts
COMMUNICATION_ARTIFACT_TYPES: Tuple[ArtifactType, ...] = (
    ArtifactType.TSK_MESSAGE,
    ArtifactType.TSK_EMAIL_MSG,
    ArtifactType.TSK_CALLLOG,
)

# Artifacts that establish any relationship between accounts
RELATIONSHIP_ARTIFACT_TYPES: Tuple[ArtifactType, ...] = (
    ArtifactType.TSK_MESSAGE,
    ArtifactType.TSK_EMAIL_MSG,
    ArtifactType.TSK_CONTACT,
    ArtifactType.TSK_CALLLOG,
)


@dataclass(frozen=True)
class Content:
    """A file or stream inside a data source."""

    obj_id: int
    name: str
    data_source_obj_id: int


@dataclass(frozen=True)
class DataSource(Content):
    """A top-level evidence container (disk image, phone dump) from one device."""

    device_id: str = ""
    time_zone: Optional[str] = None


@dataclass(frozen=True)
class Artifact:
    """A blackboard artifact."""

    artifact_id: int
    obj_id: int
    data_source_obj_id: int
    artifact_type: ArtifactType
    review_status: ReviewStatus = ReviewStatus.UNDECIDED


@dataclass(frozen=True)
class Attribute:
    """A typed text or integer value attached to an artifact."""

    attribute_type: AttributeType
    value: object
    source: str = ""


ARTIFACT_COLUMNS = """
    artifacts.artifact_id AS artifact_id,
    artifacts.obj_id AS obj_id,
    artifacts.data_source_obj_id AS data_source_obj_id,
    artifacts.artifact_type_id AS artifact_type_id,
    artifacts.review_status_id AS review_status_id
"""


def row_to_artifact(row: sqlite3.Row) -> Artifact:
    """Build an Artifact from a row selected with ARTIFACT_COLUMNS."""
    return Artifact(
        artifact_id=row["artifact_id"],
        obj_id=row["obj_id"],
        data_source_obj_id=row["data_source_obj_id"],
        artifact_type=ArtifactType(row["artifact_type_id"]),
        review_status=ReviewStatus(row["review_status_id"]),
    )


def insert_artifact(
    conn: sqlite3.Connection,
    artifact_type: ArtifactType,
    source: Content,
) -> Artifact:
    """Insert a new artifact on the given content and return it."""
    cursor = conn.execute(
        """
        INSERT INTO blackboard_artifacts
            (obj_id, data_source_obj_id, artifact_type_id, review_status_id)
        VALUES (?, ?, ?, ?);
        """,
        (
            source.obj_id,
            source.data_source_obj_id,
            int(artifact_type),
            int(ReviewStatus.UNDECIDED),
        ),
    )
    artifact_id = cursor.lastrowid
    if artifact_id is None:
        raise sqlite3.DatabaseError("artifact insert returned no row id")
    return Artifact(
        artifact_id=artifact_id,
        obj_id=source.obj_id,
        data_source_obj_id=source.data_source_obj_id,
        artifact_type=artifact_type,
    )


def insert_attributes(
    conn: sqlite3.Connection,
    artifact_id: int,
    attributes: Iterable[Attribute],
) -> None:
    """Attach attributes to an artifact. Integers go to value_int64, the rest to value_text."""
    rows = []
    for attribute in attributes:
        if isinstance(attribute.value, int) and not isinstance(attribute.value, bool):
            rows.append((artifact_id, int(attribute.attribute_type), attribute.source, None, attribute.value))
        else:
            rows.append(
                (artifact_id, int(attribute.attribute_type), attribute.source, str(attribute.value), None)
            )
    conn.executemany(
        """
        INSERT INTO blackboard_attributes
            (artifact_id, attribute_type_id, source, value_text, value_int64)
        VALUES (?, ?, ?, ?, ?);
        """,
        rows,
    )


def fetch_artifact(conn: sqlite3.Connection, artifact_id: int) -> Optional[Artifact]:
    """Read one artifact by id, or None."""
    row = conn.execute(
        f"SELECT {ARTIFACT_COLUMNS} FROM blackboard_artifacts AS artifacts "
        "WHERE artifacts.artifact_id = ?;",
        (artifact_id,),
    ).fetchone()
    return row_to_artifact(row) if row else None


def fetch_attribute_text(
    conn: sqlite3.Connection,
    artifact_id: int,
    attribute_type: AttributeType,
) -> Optional[str]:
    """Read the first text value of an attribute type on an artifact, or None."""
    row = conn.execute(
        """
        SELECT value_text FROM blackboard_attributes
        WHERE artifact_id = ? AND attribute_type_id = ?
        ORDER BY rowid
        LIMIT 1;
        """,
        (artifact_id, int(attribute_type)),
    ).fetchone()
    return row["value_text"] if row else None


def fetch_data_source_obj_ids(conn: sqlite3.Connection, device_id: str) -> List[int]:
    """Object ids of every data source captured from a device."""
    rows = conn.execute(
        "SELECT obj_id FROM data_source_info WHERE device_id = ? ORDER BY obj_id;",
        (device_id,),
    ).fetchall()
    return [row["obj_id"] for row in rows]


class Blackboard:
    """Guarded access to content, data sources and artifacts of a case."""

    def __init__(self, db: CaseDatabase):
        self.db = db

    def add_data_source(
        self, device_id: str, name: str, time_zone: Optional[str] = None
    ) -> DataSource:
        """
        Register a data source captured from a device.

        Args:
            device_id: Identifier of the physical/logical device.
            name: Display name of the data source (e.g. image file name).
            time_zone: Optional time zone of the device.

        Returns:
            The new DataSource.
        """
        with self.db.transaction("adding data source") as conn:
            cursor = conn.execute("INSERT INTO content (name) VALUES (?);", (name,))
            obj_id = cursor.lastrowid
            conn.execute(
                "UPDATE content SET data_source_obj_id = ? WHERE obj_id = ?;",
                (obj_id, obj_id),
            )
            conn.execute(
                "INSERT INTO data_source_info (obj_id, device_id, time_zone) VALUES (?, ?, ?);",
                (obj_id, device_id, time_zone),
            )

        logger.debug(f"Added data source {name!r} (obj_id={obj_id}) for device {device_id!r}")
        return DataSource(
            obj_id=obj_id,
            name=name,
            data_source_obj_id=obj_id,
            device_id=device_id,
            time_zone=time_zone,
        )

    def add_content(self, name: str, data_source: Content) -> Content:
        """Add a file/stream to a data source."""
        with self.db.transaction("adding content") as conn:
            cursor = conn.execute(
                "INSERT INTO content (name, data_source_obj_id) VALUES (?, ?);",
                (name, data_source.data_source_obj_id),
            )
            obj_id = cursor.lastrowid
        return Content(obj_id=obj_id, name=name, data_source_obj_id=data_source.data_source_obj_id)

    def new_artifact(
        self,
        artifact_type: ArtifactType,
        source: Content,
        attributes: Sequence[Attribute] = (),
    ) -> Artifact:
        """
        Post a new artifact (with optional attributes) on a piece of content.

        Args:
            artifact_type: Type of the artifact.
            source: Content the artifact was found in.
            attributes: Attributes to attach.

        Returns:
            The new Artifact.
        """
        with self.db.transaction("adding artifact") as conn:
            artifact = insert_artifact(conn, artifact_type, source)
            if attributes:
                insert_attributes(conn, artifact.artifact_id, attributes)
        return artifact

    def get_artifact(self, artifact_id: int) -> Optional[Artifact]:
        """Get an artifact by id, or None if it does not exist."""
        with self.db.read("getting artifact") as conn:
            return fetch_artifact(conn, artifact_id)

    def get_attributes(self, artifact: Artifact) -> List[Attribute]:
        """Get all attributes of an artifact in insertion order."""
        with self.db.read("getting artifact attributes") as conn:
            rows = conn.execute(
                """
                SELECT attribute_type_id, source, value_text, value_int64
                FROM blackboard_attributes
                WHERE artifact_id = ?
                ORDER BY rowid;
                """,
                (artifact.artifact_id,),
            ).fetchall()
        return [
            Attribute(
                attribute_type=AttributeType(row["attribute_type_id"]),
                value=row["value_text"] if row["value_text"] is not None else row["value_int64"],
                source=row["source"] or "",
            )
            for row in rows
        ]

    def get_attribute_text(
        self, artifact: Artifact, attribute_type: AttributeType
    ) -> Optional[str]:
        """Get the text value of one attribute of an artifact, or None."""
        with self.db.read("getting artifact attribute") as conn:
            return fetch_attribute_text(conn, artifact.artifact_id, attribute_type)

    def get_data_source_obj_ids(self, device_id: str) -> List[int]:
        """Get the object ids of all data sources captured from a device."""
        with self.db.read("getting data sources for device") as conn:
            return fetch_data_source_obj_ids(conn, device_id)

    def get_device_ids(self) -> List[str]:
        """Get every device id that has at least one data source."""
        with self.db.read("getting device ids") as conn:
            rows = conn.execute(
                "SELECT DISTINCT device_id FROM data_source_info ORDER BY device_id;"
            ).fetchall()
        return [row["device_id"] for row in rows]
