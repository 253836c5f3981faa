"""Electronic parts inventory: the records stored by the provider and the aggregate that lists them."""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Annotated
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from inventory_store.records import OWNER, PRIMARY_KEY, Int32, Int64, Record


def _utcnow() -> datetime:
    # Stored in `timestamp` (without time zone) columns.
    return datetime.now(tz=UTC).replace(tzinfo=None)


class MountingType(enum.IntEnum):
    NONE = 0
    THROUGH_HOLE = 1
    SURFACE_MOUNT = 2


class StoredFileType(enum.IntEnum):
    OTHER = 0
    IMAGE = 1
    DATASHEET = 2
    SCHEMATIC = 3
    PINOUT = 4
    REFERENCE_DESIGN = 5
    PROJECT_FILE = 6


class Part(Record):
    part_id: Annotated[Int64, PRIMARY_KEY] = 0
    quantity: Int64 = 0
    low_stock_threshold: int = 0
    cost: Decimal = Decimal(0)
    part_number: str | None = None
    package_type: str | None = None
    mounting_type_id: MountingType = MountingType.NONE
    digikey_part_number: str | None = None
    mouser_part_number: str | None = None
    arrow_part_number: str | None = None
    description: str | None = None
    part_type_id: Int64 = 0
    project_id: Int64 | None = None
    keywords: list[str] | None = None
    datasheet_url: str | None = None
    location: str | None = None
    bin_number: str | None = None
    bin_number2: str | None = None
    manufacturer: str | None = None
    manufacturer_part_number: str | None = None
    lowest_cost_supplier: str | None = None
    lowest_cost_supplier_url: str | None = None
    product_url: str | None = None
    image_url: str | None = None
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)


class PartType(Record):
    part_type_id: Annotated[Int64, PRIMARY_KEY] = 0
    parent_part_type_id: Int64 | None = None
    name: str = ""
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)


class Project(Record):
    project_id: Annotated[Int64, PRIMARY_KEY] = 0
    name: str = ""
    description: str | None = None
    location: str | None = None
    color: int = 0
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)
    date_modified_utc: datetime = Field(default_factory=_utcnow)


class StoredFile(Record):
    stored_file_id: Annotated[Int64, PRIMARY_KEY] = 0
    file_name: str = ""
    original_file_name: str = ""
    stored_file_type: StoredFileType = StoredFileType.OTHER
    part_id: Int64 | None = None
    file_length: int = 0
    crc32: Int64 = 0
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)


class OAuthCredential(Record):
    # One credential per provider name; the key is supplied by the caller.
    provider: Annotated[str, PRIMARY_KEY] = ""
    access_token: str | None = None
    refresh_token: str | None = None
    date_expires_utc: datetime = Field(default_factory=_utcnow)
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)


class OAuthRequest(Record):
    oauth_request_id: Annotated[Int32, PRIMARY_KEY] = 0
    provider: str = ""
    request_id: UUID = Field(default_factory=uuid4)
    authorization_code: str | None = None
    authorization_received: bool = False
    error: bool = False
    error_description: str | None = None
    return_to_url: str | None = None
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)
    date_modified_utc: datetime = Field(default_factory=_utcnow)


class Pcb(Record):
    pcb_id: Annotated[Int64, PRIMARY_KEY] = 0
    name: str = ""
    description: str | None = None
    serial_number_format: str | None = None
    last_serial_number: str | None = None
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)
    date_modified_utc: datetime = Field(default_factory=_utcnow)


class PcbStoredFileAssignment(Record):
    pcb_stored_file_assignment_id: Annotated[Int64, PRIMARY_KEY] = 0
    pcb_id: Int64 = 0
    stored_file_id: Int64 = 0
    name: str | None = None
    notes: str | None = None
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)
    date_modified_utc: datetime = Field(default_factory=_utcnow)


class ProjectPartAssignment(Record):
    project_part_assignment_id: Annotated[Int64, PRIMARY_KEY] = 0
    project_id: Int64 = 0
    part_id: Int64 | None = None
    pcb_id: Int64 | None = None
    part_name: str | None = None
    quantity: int = 0
    quantity_available: int = 0
    reference_id: str | None = None
    notes: str | None = None
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)
    date_modified_utc: datetime = Field(default_factory=_utcnow)


class ProjectPcbAssignment(Record):
    project_pcb_assignment_id: Annotated[Int64, PRIMARY_KEY] = 0
    project_id: Int64 = 0
    pcb_id: Int64 = 0
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)
    date_modified_utc: datetime = Field(default_factory=_utcnow)


class PartSupplier(Record):
    part_supplier_id: Annotated[Int64, PRIMARY_KEY] = 0
    part_id: Int64 = 0
    name: str = ""
    supplier_part_number: str | None = None
    cost: Decimal = Decimal(0)
    quantity_available: int = 0
    minimum_order_quantity: int = 0
    product_url: str | None = None
    image_url: str | None = None
    user_id: Annotated[Int32 | None, OWNER] = None
    date_created_utc: datetime = Field(default_factory=_utcnow)
    date_modified_utc: datetime = Field(default_factory=_utcnow)


class InventoryDb(BaseModel):
    """The database aggregate: every list field is one table, named after the field."""

    model_config = ConfigDict(extra="forbid")

    oauth_credentials: list[OAuthCredential] = Field(default_factory=list)
    oauth_requests: list[OAuthRequest] = Field(default_factory=list)
    parts: list[Part] = Field(default_factory=list)
    part_types: list[PartType] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    stored_files: list[StoredFile] = Field(default_factory=list)
    pcbs: list[Pcb] = Field(default_factory=list)
    pcb_stored_file_assignments: list[PcbStoredFileAssignment] = Field(default_factory=list)
    project_part_assignments: list[ProjectPartAssignment] = Field(default_factory=list)
    project_pcb_assignments: list[ProjectPcbAssignment] = Field(default_factory=list)
    part_suppliers: list[PartSupplier] = Field(default_factory=list)


class DefaultPartType(enum.Enum):
    """Part types seeded into an empty database; the value is the stored name."""

    OTHER = "Other"
    RESISTOR = "Resistor"
    CAPACITOR = "Capacitor"
    INDUCTOR = "Inductor"
    DIODE = "Diode"
    LED = "LED"
    ZENER = "Zener"
    TRANSISTOR = "Transistor"
    MOSFET = "MOSFET"
    IC = "IC"
    MICROCONTROLLER = "Microcontroller"
    CONNECTOR = "Connector"
    RELAY = "Relay"
    SWITCH = "Switch"
    CRYSTAL = "Crystal"
    SENSOR = "Sensor"
    CABLE = "Cable"
    HARDWARE = "Hardware"


PARENT_PART_TYPES = MappingProxyType(
    {
        DefaultPartType.LED: DefaultPartType.DIODE,
        DefaultPartType.ZENER: DefaultPartType.DIODE,
        DefaultPartType.MOSFET: DefaultPartType.TRANSISTOR,
        DefaultPartType.MICROCONTROLLER: DefaultPartType.IC,
    }
)
