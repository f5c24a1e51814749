"""A bug on a remote server, with locally tracked changes.

``Bug`` wraps an immutable ``BugInfo`` snapshot. Assigning one of the
editable fields records a pending change; ``update()`` sends only the
pending changes and the custom fields the caller touched. The targeted
operations (keywords, CC list, time tracking, duplicates, ...) are sent
immediately and each map server faults in their own way.

A bug obtained with ``get_bug(id, fetch=False)`` loads its snapshot on the
first read of a field.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from bugzilla_client.core.constants import (
    DEADLINE_FORMAT,
    MAX_COMMENT_LENGTH,
    MAX_HOURS,
    MAX_SUMMARY_LENGTH,
)
from bugzilla_client.core.exceptions import MalformedResponseError, PreconditionError
from bugzilla_client.domain.custom_fields import CustomFields
from bugzilla_client.domain.models import (
    Attachment,
    BugHistory,
    BugInfo,
    Comment,
    SeeAlsoModifications,
    UpdateBugModifications,
)
from bugzilla_client.faults import Operation
from bugzilla_client.marshalling.params import CallParams, CollectionUpdate
from bugzilla_client.marshalling.shapes import (
    ADD_COMMENT_SHAPE,
    BUG_HISTORY_SHAPE,
    UPDATE_BUG_SHAPE,
    UPDATE_SEE_ALSO_SHAPE,
    BaseKind,
)
from bugzilla_client.marshalling.unmarshaller import (
    parse_history,
    parse_see_also_result,
    parse_update_result,
)

if TYPE_CHECKING:
    from bugzilla_client.server import BugzillaServer


def check_comment(comment: str | None, parameter: str = "comment") -> None:
    """Reject a comment longer than the server accepts."""
    if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
        raise PreconditionError(
            parameter, f"must be at most {MAX_COMMENT_LENGTH} characters"
        )


def check_hours(hours: float | None, parameter: str) -> None:
    """Reject an estimate or remaining time outside the server's range."""
    if hours is None:
        return
    if hours < 0 or hours > MAX_HOURS:
        raise PreconditionError(parameter, f"must be between 0 and {MAX_HOURS}")


def check_work_time(hours: float | None, parameter: str) -> None:
    """Reject hours worked beyond the server's range.

    Negative values are allowed; they correct previously logged time.
    """
    if hours is None:
        return
    if abs(hours) > MAX_HOURS:
        raise PreconditionError(
            parameter, f"must be between -{MAX_HOURS} and {MAX_HOURS}"
        )


def check_summary(summary: str | None) -> None:
    if summary is None:
        return
    if not summary.strip():
        raise PreconditionError("summary", "must not be empty")
    if len(summary) > MAX_SUMMARY_LENGTH:
        raise PreconditionError(
            "summary", f"must be at most {MAX_SUMMARY_LENGTH} characters"
        )


class _Snapshot:
    """Read-only access to a field of the bug's snapshot."""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, bug: "Bug | None", owner: type | None = None) -> Any:
        if bug is None:
            return self
        return getattr(bug.info, self.name)

    def __set__(self, bug: "Bug", value: Any) -> None:
        msg = f"{self.name} cannot be assigned; use the targeted update method"
        raise AttributeError(msg)


class _Editable(_Snapshot):
    """A snapshot field whose assignment is recorded as a pending change."""

    def __get__(self, bug: "Bug | None", owner: type | None = None) -> Any:
        if bug is None:
            return self
        if self.name in bug._changes:
            return bug._changes[self.name]
        return getattr(bug.info, self.name)

    def __set__(self, bug: "Bug", value: Any) -> None:
        bug._changes[self.name] = value


class Bug:
    """A bug on the server.

    Args:
        server: The session the bug belongs to.
        bug_id: The bug's numeric ID.
        info: The bug's fixed fields, or None to load them on first use.
        custom_fields: The bug's custom field values, loaded with ``info``.
    """

    id: int

    alias = _Snapshot()
    blocks = _Snapshot()
    cc = _Snapshot()
    classification = _Snapshot()
    creation_time = _Snapshot()
    creator = _Snapshot()
    depends_on = _Snapshot()
    dupe_of = _Snapshot()
    flags = _Snapshot()
    groups = _Snapshot()
    is_confirmed = _Snapshot()
    is_open = _Snapshot()
    keywords = _Snapshot()
    last_change_time = _Snapshot()
    remaining_time = _Snapshot()
    see_also = _Snapshot()
    update_token = _Snapshot()

    assigned_to = _Editable()
    component = _Editable()
    deadline = _Editable()
    estimated_time = _Editable()
    is_cc_accessible = _Editable()
    is_creator_accessible = _Editable()
    op_sys = _Editable()
    platform = _Editable()
    priority = _Editable()
    product = _Editable()
    qa_contact = _Editable()
    resolution = _Editable()
    severity = _Editable()
    status = _Editable()
    summary = _Editable()
    target_milestone = _Editable()
    url = _Editable()
    version = _Editable()
    whiteboard = _Editable()

    def __init__(
        self,
        server: "BugzillaServer",
        bug_id: int,
        info: BugInfo | None = None,
        custom_fields: CustomFields | None = None,
    ) -> None:
        self.id = bug_id
        self._server = server
        self._info = info
        self._custom_fields = custom_fields
        self._changes: dict[str, Any] = {}

    def __repr__(self) -> str:
        loaded = "loaded" if self._info is not None else "not loaded"
        return f"Bug(id={self.id}, {loaded}, pending={sorted(self._changes)})"

    @property
    def info(self) -> BugInfo:
        """The bug's fixed fields as last loaded from the server."""
        if self._info is None:
            self._info, self._custom_fields = self._server.fetch_bug(self.id)
        return self._info

    @property
    def custom_fields(self) -> CustomFields:
        """The bug's custom field values; assign to change them."""
        if self._custom_fields is None:
            self._info, self._custom_fields = self._server.fetch_bug(self.id)
        return self._custom_fields

    @property
    def changed_fields(self) -> tuple[str, ...]:
        """Names of fixed fields with pending changes."""
        return tuple(self._changes)

    @property
    def has_changes(self) -> bool:
        if self._changes:
            return True
        return self._custom_fields is not None and bool(self._custom_fields.touched())

    def discard_changes(self) -> None:
        """Drop pending fixed-field changes."""
        self._changes.clear()

    def refresh(self) -> None:
        """Reload the bug from the server, discarding pending changes."""
        self._info, self._custom_fields = self._server.fetch_bug(self.id)
        self._changes.clear()

    # Comments

    def add_comment(
        self,
        comment: str,
        is_private: bool = False,
        work_time: float | None = None,
    ) -> int:
        """Add a comment to the bug.

        Args:
            comment: The comment text, at most 65535 characters.
            is_private: Whether the comment is private.
            work_time: Hours worked, added to the bug's time tracking.

        Returns:
            int: ID of the new comment.
        """
        if not comment or not comment.strip():
            raise PreconditionError("comment", "must not be empty")
        check_comment(comment)
        check_work_time(work_time, "work_time")

        params = (
            CallParams(ADD_COMMENT_SHAPE)
            .set("id", self.id)
            .set("comment", comment)
            .set("is_private", is_private)
            .set_if_given("work_time", work_time)
        )
        result = self._server.rpc.invoke(
            "Bug.add_comment", params, Operation.ADD_COMMENT, bug_id=self.id
        )
        comment_id = result.require("id", int)
        logger.debug("Added comment {} to bug {}", comment_id, self.id)
        return comment_id

    def get_comments(self, new_since: Any = None) -> list[Comment]:
        """Return the bug's comments, optionally only those after ``new_since``."""
        collection = self._server.get_comments(bug_ids=[self.id], new_since=new_since)
        return collection.bug_comments.get(self.id, [])

    def set_comment_privacy(
        self,
        changes: Mapping[int, bool],
        comment: str | None = None,
        comment_is_private: bool | None = None,
    ) -> UpdateBugModifications:
        """Make existing comments private (True) or public (False).

        Args:
            changes: Comment ID to new privacy status.
            comment: Optional comment explaining the change.
            comment_is_private: Whether that comment is private.
        """
        if not changes:
            raise PreconditionError("changes", "at least one comment is required")
        params = CallParams(UPDATE_BUG_SHAPE).set(
            "comment_is_private",
            {str(comment_id): bool(private) for comment_id, private in changes.items()},
        )
        return self._send_update(
            params, Operation.SET_COMMENT_PRIVACY, comment, comment_is_private
        )

    # Attachments

    def add_attachment(
        self,
        data: bytes,
        file_name: str,
        summary: str,
        mime_type: str | None = None,
        comment: str | None = None,
        is_patch: bool = False,
        is_private: bool = False,
    ) -> int:
        """Attach data to the bug and return the new attachment's ID."""
        ids = self._server.add_attachment_to_bugs(
            [self.id],
            data,
            file_name,
            summary,
            mime_type=mime_type,
            comment=comment,
            is_patch=is_patch,
            is_private=is_private,
        )
        if not ids:
            raise MalformedResponseError("no attachment ID returned", "Bug.add_attachment")
        return ids[0]

    def add_attachment_file(
        self,
        path: str | Path,
        summary: str,
        mime_type: str | None = None,
        comment: str | None = None,
        is_patch: bool = False,
        is_private: bool = False,
    ) -> int:
        """Attach a file from disk to the bug."""
        ids = self._server.add_attachment_file_to_bugs(
            [self.id],
            path,
            summary,
            mime_type=mime_type,
            comment=comment,
            is_patch=is_patch,
            is_private=is_private,
        )
        if not ids:
            raise MalformedResponseError("no attachment ID returned", "Bug.add_attachment")
        return ids[0]

    def get_attachments(self) -> list[Attachment]:
        collection = self._server.get_attachments(bug_ids=[self.id])
        return collection.bug_attachments.get(self.id, [])

    # History and see also

    def get_history(self) -> BugHistory:
        params = CallParams(BUG_HISTORY_SHAPE).set("ids", [self.id])
        result = self._server.rpc.invoke(
            "Bug.history", params, Operation.GET_HISTORY, bug_id=self.id
        )
        for history in parse_history(result):
            if history.bug_id == self.id:
                return history
        raise MalformedResponseError(f"no history returned for bug {self.id}", result.path)

    def update_see_also(
        self,
        add: Iterable[str] | None = None,
        remove: Iterable[str] | None = None,
    ) -> SeeAlsoModifications:
        """Add and remove "see also" URLs.

        Adding a URL already present is ignored by the server and shows up
        as no modification.
        """
        if add is None and remove is None:
            raise PreconditionError("add/remove", "at least one URL list is required")
        params = (
            CallParams(UPDATE_SEE_ALSO_SHAPE)
            .set("ids", [self.id])
            .set_if_given("add", add)
            .set_if_given("remove", remove)
        )
        result = self._server.rpc.invoke(
            "Bug.update_see_also", params, Operation.UPDATE_SEE_ALSO, bug_id=self.id
        )
        for modification in parse_see_also_result(result):
            if modification.bug_id == self.id:
                return modification
        return SeeAlsoModifications(bug_id=self.id)

    # Targeted updates

    def reset_assigned_to(
        self, comment: str | None = None, comment_is_private: bool | None = None
    ) -> UpdateBugModifications:
        """Reset the assignee to the component's default."""
        params = CallParams(UPDATE_BUG_SHAPE).set("reset_assigned_to", True)
        return self._send_update(
            params, Operation.RESET_ASSIGNED_TO, comment, comment_is_private
        )

    def reset_qa_contact(
        self, comment: str | None = None, comment_is_private: bool | None = None
    ) -> UpdateBugModifications:
        """Reset the QA contact to the component's default."""
        params = CallParams(UPDATE_BUG_SHAPE).set("reset_qa_contact", True)
        return self._send_update(
            params, Operation.RESET_QA_CONTACT, comment, comment_is_private
        )

    def set_remaining_time(
        self,
        hours: float,
        comment: str | None = None,
        comment_is_private: bool | None = None,
    ) -> UpdateBugModifications:
        check_hours(hours, "hours")
        params = CallParams(UPDATE_BUG_SHAPE).set("remaining_time", hours)
        return self._send_update(
            params, Operation.SET_REMAINING_TIME, comment, comment_is_private
        )

    def update_hours_worked(
        self,
        hours_worked: float,
        remaining_time: float | None = None,
        comment: str | None = None,
        comment_is_private: bool | None = None,
    ) -> UpdateBugModifications:
        """Add worked hours, optionally setting the remaining time too."""
        check_work_time(hours_worked, "hours_worked")
        check_hours(remaining_time, "remaining_time")
        params = (
            CallParams(UPDATE_BUG_SHAPE)
            .set("work_time", hours_worked)
            .set_if_given("remaining_time", remaining_time)
        )
        return self._send_update(
            params, Operation.UPDATE_HOURS_WORKED, comment, comment_is_private
        )

    def update_keywords(
        self,
        add: Iterable[str] | None = None,
        remove: Iterable[str] | None = None,
        set: Iterable[str] | None = None,  # noqa: A002
        comment: str | None = None,
        comment_is_private: bool | None = None,
    ) -> UpdateBugModifications:
        """Change the bug's keywords.

        ``set`` replaces all keywords and takes precedence over ``add`` and
        ``remove`` given in the same call.
        """
        update = CollectionUpdate(add=add, remove=remove, set=set)
        params = CallParams(UPDATE_BUG_SHAPE).set("keywords", update)
        return self._send_update(
            params, Operation.UPDATE_KEYWORDS, comment, comment_is_private
        )

    def update_cc_list(
        self,
        add: Iterable[str] | None = None,
        remove: Iterable[str] | None = None,
        comment: str | None = None,
        comment_is_private: bool | None = None,
    ) -> UpdateBugModifications:
        """Add users to and remove users from the CC list."""
        if add is None and remove is None:
            raise PreconditionError("add/remove", "at least one user list is required")
        update = CollectionUpdate(add=add, remove=remove)
        params = CallParams(UPDATE_BUG_SHAPE).set("cc", update)
        return self._send_update(
            params, Operation.UPDATE_CC_LIST, comment, comment_is_private
        )

    def update_dependencies(
        self,
        depends_on: CollectionUpdate | None = None,
        blocks: CollectionUpdate | None = None,
        comment: str | None = None,
        comment_is_private: bool | None = None,
    ) -> UpdateBugModifications:
        """Change the bugs this bug depends on and the bugs it blocks."""
        if depends_on is None and blocks is None:
            raise PreconditionError(
                "depends_on/blocks", "at least one dependency update is required"
            )
        params = (
            CallParams(UPDATE_BUG_SHAPE)
            .set_if_given("depends_on", depends_on)
            .set_if_given("blocks", blocks)
        )
        return self._send_update(
            params, Operation.UPDATE_DEPENDENCIES, comment, comment_is_private
        )

    def mark_as_duplicate(
        self,
        duplicate_of: int,
        comment: str | None = None,
        comment_is_private: bool | None = None,
    ) -> UpdateBugModifications:
        """Resolve the bug as a duplicate of ``duplicate_of``."""
        if duplicate_of == self.id:
            raise PreconditionError("duplicate_of", "a bug cannot duplicate itself")
        params = CallParams(UPDATE_BUG_SHAPE).set("dupe_of", duplicate_of)
        return self._send_update(
            params, Operation.MARK_AS_DUPLICATE, comment, comment_is_private
        )

    # General update

    def update(
        self, comment: str | None = None, comment_is_private: bool | None = None
    ) -> UpdateBugModifications | None:
        """Send pending field changes and touched custom fields.

        Args:
            comment: Optional comment added with the change.
            comment_is_private: Whether that comment is private.

        Returns:
            UpdateBugModifications | None: The changes the server made, or
                None if there was nothing to send.
        """
        touched = self._custom_fields.touched() if self._custom_fields else []
        if not self._changes and not touched and not comment:
            logger.debug("Bug {} has no pending changes", self.id)
            return None

        if "summary" in self._changes:
            check_summary(self._changes["summary"])
        deadline = self._changes.get("deadline")
        if isinstance(deadline, datetime):
            self._changes["deadline"] = deadline.strftime(DEADLINE_FORMAT)
        if "estimated_time" in self._changes:
            check_hours(self._changes["estimated_time"], "estimated_time")

        descriptors = (
            self._server.custom_field_registry.ensure_loaded(self._server.rpc)
            if touched
            else ()
        )
        shape = self._server.shapes.shape_for(BaseKind.UPDATE_BUG, descriptors)
        params = CallParams(shape, self._changes)
        for value in touched:
            params.set(value.name, value.value)

        modifications = self._send_update(
            params, Operation.UPDATE_BUG, comment, comment_is_private
        )

        if self._info is not None and self._changes:
            self._info = self._info.model_copy(
                update={
                    **self._changes,
                    "last_change_time": modifications.last_change_time
                    or self._info.last_change_time,
                }
            )
        self._changes.clear()
        if self._custom_fields is not None:
            self._custom_fields.mark_saved()
        return modifications

    def _send_update(
        self,
        params: CallParams,
        operation: Operation,
        comment: str | None,
        comment_is_private: bool | None,
    ) -> UpdateBugModifications:
        check_comment(comment)
        params.set("ids", [self.id])
        if comment:
            body: dict[str, Any] = {"body": comment}
            if comment_is_private is not None:
                body["is_private"] = comment_is_private
            params.set("comment", body)

        result = self._server.rpc.invoke(
            "Bug.update", params, operation, bug_id=self.id
        )
        for modifications in parse_update_result(result):
            if modifications.bug_id == self.id:
                logger.debug(
                    "Updated bug {}",
                    self.id,
                    operation=operation.value,
                    changed=sorted(modifications.changes),
                )
                return modifications
        raise MalformedResponseError(f"no update result for bug {self.id}", result.path)
