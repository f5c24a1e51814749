"""Conversion of response structs into domain models.

Each ``parse_*`` function takes a ``Struct`` (the call's result, or one
element of it) and returns typed models. A missing mandatory key or a value
that cannot be coerced raises ``MalformedResponseError`` naming the path of
the offending value; this is a contract violation, not a server fault.

Several responses key nested structs by bug, comment or attachment ID. The
keys arrive as strings and are converted to ``int``.
"""

from collections.abc import Callable, Iterator
from datetime import datetime

from bugzilla_client.core.constants import DIFF_SEPARATOR
from bugzilla_client.core.exceptions import TypeMismatchError
from bugzilla_client.domain.custom_fields import (
    CustomFieldRegistry,
    CustomFields,
    CustomFieldType,
)
from bugzilla_client.domain.models import (
    Attachment,
    AttachmentCollection,
    BugChange,
    BugFetchFault,
    BugFieldDetails,
    BugHistory,
    BugInfo,
    Classification,
    ClassificationProduct,
    Comment,
    CommentCollection,
    Component,
    Extension,
    FieldChange,
    FieldModification,
    FieldValue,
    Flag,
    Milestone,
    Product,
    ProductVersion,
    SeeAlsoModifications,
    ServerTime,
    StatusTransition,
    UpdateBugModifications,
    User,
)
from bugzilla_client.marshalling.structured import Struct, coerce_int

type ParsedBug = tuple[BugInfo, CustomFields]


def split_diff(text: str | None) -> list[str]:
    """Split a comma-space joined diff value into trimmed tokens.

    Only the exact separator ``", "`` splits: ``"a,b"`` stays one token. An
    empty or missing value yields an empty list.

    Args:
        text: The ``added`` or ``removed`` value of a field modification.

    Returns:
        list[str]: The tokens in server order.
    """
    if text is None or not text.strip():
        return []
    return [token.strip() for token in text.split(DIFF_SEPARATOR)]


def _aliases(data: Struct, key: str = "alias") -> list[str]:
    # Servers before 5.0 return a single string, later ones an array
    value = data.raw(key)
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return data.scalars(key, str)
    return [data.require(key, str)]


def _keyed(data: Struct) -> Iterator[tuple[int, Struct]]:
    for key, value in data.entries():
        yield coerce_int(key, value.path), value


def _keyed_arrays[T](
    data: Struct, parse: Callable[[Struct], T], inner_key: str | None
) -> dict[int, list[T]]:
    result: dict[int, list[T]] = {}
    for key in data:
        path = data.child_path(str(key))
        bug_id = coerce_int(key, path)
        if inner_key is None:
            raw_items = data.raw(key)
            if not isinstance(raw_items, (list, tuple)):
                raise TypeMismatchError(path, "array", raw_items)
            items = [Struct(item, f"{path}[{i}]") for i, item in enumerate(raw_items)]
        else:
            items = data.struct(key).structs(inner_key)
        result[bug_id] = [parse(item) for item in items]
    return result


# Bugs


def parse_flag(data: Struct) -> Flag:
    return Flag(
        id=data.require("id", int),
        name=data.require("name", str),
        type_id=data.require("type_id", int),
        creation_date=data.require("creation_date", datetime),
        modification_date=data.require("modification_date", datetime),
        status=data.require("status", str),
        setter=data.require("setter", str),
        requestee=data.optional("requestee", str),
    )


def parse_bug_info(data: Struct) -> BugInfo:
    """Parse the fixed fields of one bug, including its flags."""
    return BugInfo(
        id=data.require("id", int),
        alias=_aliases(data),
        assigned_to=data.optional("assigned_to", str),
        blocks=data.scalars("blocks", int),
        cc=data.scalars("cc", str),
        classification=data.optional("classification", str),
        component=data.require("component", str),
        creation_time=data.optional("creation_time", datetime),
        creator=data.optional("creator", str),
        deadline=data.optional("deadline", str),
        depends_on=data.scalars("depends_on", int),
        dupe_of=data.optional("dupe_of", int),
        estimated_time=data.optional("estimated_time", float),
        groups=data.scalars("groups", str),
        is_cc_accessible=data.optional("is_cc_accessible", bool, True),
        is_confirmed=data.optional("is_confirmed", bool, True),
        is_open=data.optional("is_open", bool, True),
        is_creator_accessible=data.optional("is_creator_accessible", bool, True),
        keywords=data.scalars("keywords", str),
        last_change_time=data.optional("last_change_time", datetime),
        op_sys=data.optional("op_sys", str),
        platform=data.optional("platform", str),
        priority=data.optional("priority", str),
        product=data.require("product", str),
        qa_contact=data.optional("qa_contact", str),
        remaining_time=data.optional("remaining_time", float),
        resolution=data.optional("resolution", str),
        see_also=data.scalars("see_also", str),
        severity=data.optional("severity", str),
        status=data.optional("status", str),
        summary=data.require("summary", str),
        target_milestone=data.optional("target_milestone", str),
        update_token=data.optional("update_token", str),
        url=data.optional("url", str),
        version=data.optional("version", str),
        whiteboard=data.optional("whiteboard", str),
        flags=[parse_flag(flag) for flag in data.structs("flags", required=False)],
    )


def parse_bug(data: Struct, registry: CustomFieldRegistry) -> ParsedBug:
    """Parse one bug's fixed fields and its custom field values.

    Args:
        data: One element of the ``bugs`` array.
        registry: The session's loaded custom field registry.

    Returns:
        ParsedBug: The fixed fields and one value per registered custom field.
    """
    return parse_bug_info(data), registry.values_for(data)


def parse_bug_fetch_fault(data: Struct) -> BugFetchFault:
    return BugFetchFault(
        id=data.require("id", str),
        fault_code=data.require("faultCode", int),
        fault_string=data.optional("faultString", str, ""),
    )


def parse_bugs(
    result: Struct, registry: CustomFieldRegistry
) -> tuple[list[ParsedBug], list[BugFetchFault]]:
    """Parse a ``Bug.get`` or ``Bug.search`` result.

    Returns:
        tuple: Parsed bugs, and the per-bug faults reported in permissive
            mode (empty otherwise).
    """
    bugs = [parse_bug(item, registry) for item in result.structs("bugs")]
    faults = [
        parse_bug_fetch_fault(item)
        for item in result.structs("faults", required=False)
    ]
    return bugs, faults


# Comments and attachments


def parse_comment(data: Struct) -> Comment:
    # "creator" replaced "author" in 4.4; either may be present
    author = data.optional("creator", str) or data.require("author", str)
    return Comment(
        id=data.require("id", int),
        bug_id=data.require("bug_id", int),
        text=data.optional("text", str, ""),
        author=author,
        time=data.require("time", datetime),
        is_private=data.optional("is_private", bool, False),
        attachment_id=data.optional("attachment_id", int),
    )


def parse_comments(result: Struct) -> CommentCollection:
    """Parse a ``Bug.comments`` result.

    The ``bugs`` struct maps each bug ID to a struct holding a ``comments``
    array; the ``comments`` struct maps comment IDs to single comments.
    """
    bugs = result.optional_struct("bugs")
    comments = result.optional_struct("comments")
    return CommentCollection(
        bug_comments=_keyed_arrays(bugs, parse_comment, "comments") if bugs else {},
        comments=(
            {key: parse_comment(item) for key, item in _keyed(comments)}
            if comments
            else {}
        ),
    )


def parse_attachment(data: Struct) -> Attachment:
    # "creator" replaced "attacher" in 3.6
    creator = data.optional("creator", str) or data.require("attacher", str)
    return Attachment(
        id=data.require("id", int),
        bug_id=data.require("bug_id", int),
        file_name=data.require("file_name", str),
        summary=data.optional("summary", str, ""),
        content_type=data.require("content_type", str),
        creator=creator,
        creation_time=data.require("creation_time", datetime),
        last_change_time=data.require("last_change_time", datetime),
        is_private=data.optional("is_private", bool, False),
        is_obsolete=data.optional("is_obsolete", bool, False),
        is_url=data.optional("is_url", bool, False),
        is_patch=data.optional("is_patch", bool, False),
        data=data.optional("data", bytes),
        size=data.optional("size", int),
        flags=[parse_flag(flag) for flag in data.structs("flags", required=False)],
    )


def parse_attachments(result: Struct) -> AttachmentCollection:
    """Parse a ``Bug.attachments`` result.

    The ``bugs`` struct maps each bug ID directly to an array of
    attachments; the ``attachments`` struct maps attachment IDs to single
    attachments.
    """
    bugs = result.optional_struct("bugs")
    attachments = result.optional_struct("attachments")
    return AttachmentCollection(
        bug_attachments=_keyed_arrays(bugs, parse_attachment, None) if bugs else {},
        attachments=(
            {key: parse_attachment(item) for key, item in _keyed(attachments)}
            if attachments
            else {}
        ),
    )


# History and update results


def parse_field_change(data: Struct) -> FieldChange:
    return FieldChange(
        field_name=data.require("field_name", str),
        removed=data.optional("removed", str, ""),
        added=data.optional("added", str, ""),
        attachment_id=data.optional("attachment_id", int),
    )


def parse_history(result: Struct) -> list[BugHistory]:
    """Parse a ``Bug.history`` result: bugs, change sets, field changes."""
    histories = []
    for bug in result.structs("bugs"):
        changes = [
            BugChange(
                when=entry.require("when", datetime),
                who=entry.require("who", str),
                changes=[parse_field_change(c) for c in entry.structs("changes")],
            )
            for entry in bug.structs("history", required=False)
        ]
        histories.append(
            BugHistory(bug_id=bug.require("id", int), alias=_aliases(bug), history=changes)
        )
    return histories


def parse_field_modification(field_name: str, data: Struct) -> FieldModification:
    """Parse one field's diff, splitting the joined added/removed strings."""
    return FieldModification(
        field_name=field_name,
        added=split_diff(data.optional("added", str)),
        removed=split_diff(data.optional("removed", str)),
    )


def parse_update_result(result: Struct) -> list[UpdateBugModifications]:
    """Parse a ``Bug.update`` result into one modification set per bug."""
    updates = []
    for bug in result.structs("bugs"):
        changes = bug.optional_struct("changes")
        updates.append(
            UpdateBugModifications(
                bug_id=bug.require("id", int),
                alias=_aliases(bug),
                last_change_time=bug.optional("last_change_time", datetime),
                changes=(
                    {
                        name: parse_field_modification(name, diff)
                        for name, diff in changes.entries()
                    }
                    if changes
                    else {}
                ),
            )
        )
    return updates


def parse_see_also_result(result: Struct) -> list[SeeAlsoModifications]:
    """Parse a ``Bug.update_see_also`` result, keyed by bug ID."""
    modifications = []
    for bug_id, changes in _keyed(result.struct("changes")):
        see_also = changes.optional_struct("see_also")
        modifications.append(
            SeeAlsoModifications(
                bug_id=bug_id,
                added=see_also.scalars("added", str) if see_also else [],
                removed=see_also.scalars("removed", str) if see_also else [],
            )
        )
    return modifications


# Products, users and classifications


def parse_component(data: Struct) -> Component:
    return Component(
        id=data.require("id", int),
        name=data.require("name", str),
        description=data.optional("description", str, ""),
        default_assigned_to=data.optional("default_assigned_to", str),
        default_qa_contact=data.optional("default_qa_contact", str),
        sort_key=data.optional("sort_key", int, 0),
        is_active=data.optional("is_active", bool, True),
    )


def parse_product(data: Struct) -> Product:
    return Product(
        id=data.require("id", int),
        name=data.require("name", str),
        description=data.optional("description", str, ""),
        is_active=data.optional("is_active", bool, True),
        default_milestone=data.optional("default_milestone", str),
        has_unconfirmed=data.optional("has_unconfirmed", bool, False),
        classification=data.optional("classification", str),
        components=[
            parse_component(c) for c in data.structs("components", required=False)
        ],
        versions=[
            ProductVersion(
                name=v.require("name", str),
                sort_key=v.optional("sort_key", int, 0),
                is_active=v.optional("is_active", bool, True),
            )
            for v in data.structs("versions", required=False)
        ],
        milestones=[
            Milestone(
                name=m.require("name", str),
                sort_key=m.optional("sort_key", int, 0),
                is_active=m.optional("is_active", bool, True),
            )
            for m in data.structs("milestones", required=False)
        ],
    )


def parse_products(result: Struct) -> list[Product]:
    return [parse_product(item) for item in result.structs("products")]


def parse_ids(result: Struct, key: str = "ids") -> list[int]:
    """Parse an array of IDs, as returned by the product listings."""
    return result.scalars(key, int, required=True)


def parse_user(data: Struct) -> User:
    return User(
        id=data.require("id", int),
        name=data.require("name", str),
        real_name=data.optional("real_name", str),
        email=data.optional("email", str),
        can_login=data.optional("can_login", bool),
        email_enabled=data.optional("email_enabled", bool),
        login_denied_text=data.optional("login_denied_text", str),
    )


def parse_users(result: Struct) -> list[User]:
    return [parse_user(item) for item in result.structs("users")]


def parse_classifications(result: Struct) -> list[Classification]:
    return [
        Classification(
            id=item.require("id", int),
            name=item.require("name", str),
            description=item.optional("description", str, ""),
            sort_key=item.optional("sort_key", int, 0),
            products=[
                ClassificationProduct(
                    id=p.require("id", int),
                    name=p.require("name", str),
                    description=p.optional("description", str, ""),
                )
                for p in item.structs("products", required=False)
            ],
        )
        for item in result.structs("classifications")
    ]


# Server metadata


def parse_field_value(data: Struct) -> FieldValue:
    return FieldValue(
        # The status field's "---" placeholder has no name on some servers
        name=data.optional("name", str, ""),
        sort_key=data.optional("sort_key", int, 0),
        visibility_values=data.scalars("visibility_values", str),
        is_open=data.optional("is_open", bool),
        can_change_to=[
            StatusTransition(
                name=t.require("name", str),
                comment_required=t.optional("comment_required", bool, False),
            )
            for t in data.structs("can_change_to", required=False)
        ],
    )


def parse_fields(result: Struct) -> list[BugFieldDetails]:
    """Parse a ``Bug.fields`` result into full field metadata."""
    return [
        BugFieldDetails(
            id=item.require("id", int),
            name=item.require("name", str),
            display_name=item.optional("display_name", str),
            field_type=CustomFieldType.from_code(item.optional("type", int, 0)),
            is_custom=item.optional("is_custom", bool, False),
            is_mandatory=item.optional("is_mandatory", bool, False),
            is_on_bug_entry=item.optional("is_on_bug_entry", bool, False),
            visibility_field=item.optional("visibility_field", str),
            visibility_values=item.scalars("visibility_values", str),
            value_field=item.optional("value_field", str),
            values=[parse_field_value(v) for v in item.structs("values", required=False)],
        )
        for item in result.structs("fields")
    ]


def parse_time(result: Struct) -> ServerTime:
    return ServerTime(
        db_time=result.require("db_time", datetime),
        web_time=result.require("web_time", datetime),
        web_time_utc=result.optional("web_time_utc", datetime),
        tz_name=result.optional("tz_name", str),
        tz_short_name=result.optional("tz_short_name", str),
        tz_offset=result.optional("tz_offset", str),
    )


def parse_extensions(result: Struct) -> list[Extension]:
    """Parse ``Bugzilla.extensions``: a struct of name to ``{"version": ...}``."""
    return [
        Extension(name=name, version=details.optional("version", str, ""))
        for name, details in result.struct("extensions").entries()
    ]
