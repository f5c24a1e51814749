"""Typed entities returned by the Bugzilla web service.

These models hold data exactly as parsed from responses; they carry no
server behaviour. Mutable bug state and custom field values live on
``bugzilla_client.bug.Bug``, which wraps a ``BugInfo`` snapshot.

Key models:
- **BugInfo**: Fixed fields of one bug, including its flags
- **Comment / Attachment**: Bug comments and attachments, with collections
  keyed by bug and by ID
- **BugHistory**: Change sets of one bug, each with per-field changes
- **UpdateBugModifications**: Field-level diff reported by an update
- **Product / User / Classification**: Administrative entities
- **BugFieldDetails**: Field metadata with legal values and transitions
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from bugzilla_client.domain.custom_fields import CustomFieldType


class _Entity(BaseModel):
    """Common configuration: parsed entities are immutable snapshots."""

    model_config = ConfigDict(frozen=True)


class Flag(_Entity):
    """A flag set on a bug or attachment."""

    id: int
    name: str
    type_id: int
    creation_date: datetime
    modification_date: datetime
    status: str = Field(..., description="Flag status: +, - or ?")
    setter: str
    requestee: str | None = Field(
        default=None, description="Login of the user asked to set the flag"
    )


class BugInfo(_Entity):
    """Fixed fields of one bug as returned by ``Bug.get`` and ``Bug.search``."""

    id: int
    alias: list[str] = Field(default_factory=list)
    assigned_to: str | None = None
    blocks: list[int] = Field(default_factory=list)
    cc: list[str] = Field(default_factory=list)
    classification: str | None = None
    component: str
    creation_time: datetime | None = None
    creator: str | None = None
    deadline: str | None = None
    depends_on: list[int] = Field(default_factory=list)
    dupe_of: int | None = None
    estimated_time: float | None = None
    groups: list[str] = Field(default_factory=list)
    is_cc_accessible: bool = True
    is_confirmed: bool = True
    is_open: bool = True
    is_creator_accessible: bool = True
    keywords: list[str] = Field(default_factory=list)
    last_change_time: datetime | None = None
    op_sys: str | None = None
    platform: str | None = None
    priority: str | None = None
    product: str
    qa_contact: str | None = None
    remaining_time: float | None = None
    resolution: str | None = None
    see_also: list[str] = Field(default_factory=list)
    severity: str | None = None
    status: str | None = None
    summary: str
    target_milestone: str | None = None
    update_token: str | None = None
    url: str | None = None
    version: str | None = None
    whiteboard: str | None = None
    flags: list[Flag] = Field(default_factory=list)


class BugFetchFault(_Entity):
    """A bug that ``Bug.get`` could not return in permissive mode."""

    id: str = Field(..., description="The requested bug ID or alias")
    fault_code: int
    fault_string: str


class Comment(_Entity):
    """A comment on a bug."""

    id: int
    bug_id: int
    text: str
    author: str
    time: datetime
    is_private: bool = False
    attachment_id: int | None = None


class CommentCollection(_Entity):
    """Comments requested by bug and by comment ID."""

    bug_comments: dict[int, list[Comment]] = Field(
        default_factory=dict, description="Comments of each requested bug"
    )
    comments: dict[int, Comment] = Field(
        default_factory=dict, description="Specifically requested comments"
    )


class Attachment(_Entity):
    """An attachment on a bug."""

    id: int
    bug_id: int
    file_name: str
    summary: str
    content_type: str
    creator: str
    creation_time: datetime
    last_change_time: datetime
    is_private: bool = False
    is_obsolete: bool = False
    is_url: bool = False
    is_patch: bool = False
    data: bytes | None = None
    size: int | None = None
    flags: list[Flag] = Field(default_factory=list)


class AttachmentCollection(_Entity):
    """Attachments requested by bug and by attachment ID."""

    bug_attachments: dict[int, list[Attachment]] = Field(default_factory=dict)
    attachments: dict[int, Attachment] = Field(default_factory=dict)


class FieldChange(_Entity):
    """One field's change within a history entry."""

    field_name: str
    removed: str
    added: str
    attachment_id: int | None = None


class BugChange(_Entity):
    """A set of changes made to a bug at one time by one user."""

    when: datetime
    who: str
    changes: list[FieldChange] = Field(default_factory=list)


class BugHistory(_Entity):
    """The full change history of one bug."""

    bug_id: int
    alias: list[str] = Field(default_factory=list)
    history: list[BugChange] = Field(default_factory=list)


class FieldModification(_Entity):
    """Values added to and removed from one field by an update."""

    field_name: str
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)


class UpdateBugModifications(_Entity):
    """The changes an update actually made to one bug."""

    bug_id: int
    alias: list[str] = Field(default_factory=list)
    last_change_time: datetime | None = None
    changes: dict[str, FieldModification] = Field(default_factory=dict)

    def modification(self, field_name: str) -> FieldModification | None:
        """Return the modification of ``field_name``, if it changed."""
        return self.changes.get(field_name)


class SeeAlsoModifications(_Entity):
    """URLs added to and removed from a bug's "see also" field."""

    bug_id: int
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)


class Component(_Entity):
    """A component of a product."""

    id: int
    name: str
    description: str = ""
    default_assigned_to: str | None = None
    default_qa_contact: str | None = None
    sort_key: int = 0
    is_active: bool = True


class ProductVersion(_Entity):
    name: str
    sort_key: int = 0
    is_active: bool = True


class Milestone(_Entity):
    name: str
    sort_key: int = 0
    is_active: bool = True


class Product(_Entity):
    """A product with its components, versions and milestones."""

    id: int
    name: str
    description: str = ""
    is_active: bool = True
    default_milestone: str | None = None
    has_unconfirmed: bool = False
    classification: str | None = None
    components: list[Component] = Field(default_factory=list)
    versions: list[ProductVersion] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)


class User(_Entity):
    """A user account. Fields other than ``id`` and ``name`` may be hidden."""

    id: int
    name: str = Field(..., description="Login name")
    real_name: str | None = None
    email: str | None = None
    can_login: bool | None = None
    email_enabled: bool | None = None
    login_denied_text: str | None = None


class Extension(_Entity):
    """An extension installed on the server."""

    name: str
    version: str


class ServerTime(_Entity):
    """The server's clock and time zone."""

    db_time: datetime
    web_time: datetime
    web_time_utc: datetime | None = None
    tz_name: str | None = None
    tz_short_name: str | None = None
    tz_offset: str | None = None


class ClassificationProduct(_Entity):
    id: int
    name: str
    description: str = ""


class Classification(_Entity):
    """A classification grouping products."""

    id: int
    name: str
    description: str = ""
    sort_key: int = 0
    products: list[ClassificationProduct] = Field(default_factory=list)


class StatusTransition(_Entity):
    """A status a bug may move to, and whether a comment is required."""

    name: str
    comment_required: bool = False


class FieldValue(_Entity):
    """One legal value of a select field."""

    name: str
    sort_key: int = 0
    visibility_values: list[str] = Field(default_factory=list)
    is_open: bool | None = Field(
        default=None, description="Set only for values of the status field"
    )
    can_change_to: list[StatusTransition] = Field(default_factory=list)


class BugFieldDetails(_Entity):
    """Metadata about one bug field, fixed or custom."""

    id: int
    name: str
    display_name: str | None = None
    field_type: CustomFieldType = CustomFieldType.UNKNOWN
    is_custom: bool = False
    is_mandatory: bool = False
    is_on_bug_entry: bool = False
    visibility_field: str | None = None
    visibility_values: list[str] = Field(default_factory=list)
    value_field: str | None = None
    values: list[FieldValue] = Field(default_factory=list)
