"""Translation of server fault codes into typed exceptions.

The server reuses small numeric fault codes across unrelated methods, and
several local operations share one remote method (``Bug.update`` backs the
keyword, CC list, time tracking, duplicate and general updates). A code's
meaning therefore depends on the local operation that failed, so the table
is keyed by ``(Operation, code)``.

Codes missing from an operation's mapping produce ``OperationFailedError``
with the operation's description and the server's message. Nothing is
retried.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bugzilla_client.core.exceptions import (
    AttachmentAccessDeniedError,
    AttachmentTooLargeError,
    BugAccessDeniedError,
    BugEditAccessDeniedError,
    CommentAccessDeniedError,
    CyclicBugDependenciesError,
    CyclicBugDuplicateError,
    DisabledAccountError,
    DuplicateAccountError,
    DuplicateGroupNameError,
    DuplicateProductNameError,
    ExpiredPasswordError,
    FaultError,
    GroupEditAccessDeniedError,
    IllegalEmailAddressError,
    InsufficientPrivilegesError,
    InvalidAttachmentUrlError,
    InvalidBugFieldValueError,
    InvalidBugIdOrAliasError,
    InvalidBugResolutionChangeError,
    InvalidBugStatusTransitionError,
    InvalidCommentIdError,
    InvalidGroupDefinitionError,
    InvalidGroupRegExpError,
    InvalidKeywordError,
    InvalidLoginDetailsError,
    InvalidLoginOrGroupNameError,
    InvalidMimeTypeError,
    InvalidObjectError,
    InvalidProductDefinitionError,
    InvalidSeeAlsoUrlError,
    InvalidUserError,
    OperationFailedError,
    PasswordTooShortError,
    SeeAlsoEditAccessDeniedError,
    UrlAttachmentsDisabledError,
    UserAccessDeniedError,
    UserMatchingDeniedError,
)


class Operation(Enum):
    """Local operations, each with its own fault mapping."""

    GET_BUG = "get_bug"
    SEARCH_BUGS = "search_bugs"
    CREATE_BUG = "create_bug"
    UPDATE_BUG = "update_bug"
    ADD_COMMENT = "add_comment"
    GET_COMMENTS = "get_comments"
    ADD_ATTACHMENT = "add_attachment"
    GET_ATTACHMENTS = "get_attachments"
    GET_HISTORY = "get_history"
    UPDATE_SEE_ALSO = "update_see_also"
    RESET_ASSIGNED_TO = "reset_assigned_to"
    RESET_QA_CONTACT = "reset_qa_contact"
    SET_REMAINING_TIME = "set_remaining_time"
    UPDATE_HOURS_WORKED = "update_hours_worked"
    SET_COMMENT_PRIVACY = "set_comment_privacy"
    UPDATE_KEYWORDS = "update_keywords"
    UPDATE_CC_LIST = "update_cc_list"
    UPDATE_DEPENDENCIES = "update_dependencies"
    MARK_AS_DUPLICATE = "mark_as_duplicate"
    GET_FIELDS = "get_fields"
    LOGIN = "login"
    LOGOUT = "logout"
    CREATE_USER = "create_user"
    SEARCH_USERS = "search_users"
    OFFER_ACCOUNT = "offer_account"
    GET_PRODUCTS = "get_products"
    LIST_PRODUCTS = "list_products"
    CREATE_PRODUCT = "create_product"
    CREATE_GROUP = "create_group"
    GET_CLASSIFICATIONS = "get_classifications"
    SERVER_INFO = "server_info"


class FaultRule(BaseModel):
    """The exception raised for one code, and its message template.

    Templates are formatted with the call's context (such as ``bug_id``) and
    ``message``, the server's fault string.
    """

    model_config = ConfigDict(frozen=True)

    error: type[FaultError]
    template: str = "{message}"


class FaultMapping(BaseModel):
    """Fault rules of one operation."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., description="What the operation was doing")
    rules: dict[int, FaultRule] = Field(default_factory=dict)


def _rule(error: type[FaultError], template: str = "{message}") -> FaultRule:
    return FaultRule(error=error, template=template)


def _rules(*entries: tuple[tuple[int, ...], FaultRule]) -> dict[int, FaultRule]:
    rules: dict[int, FaultRule] = {}
    for codes, rule in entries:
        for code in codes:
            rules[code] = rule
    return rules


_INVALID_BUG = _rule(InvalidBugIdOrAliasError, "Invalid bug ID or alias: {bug_id}")
_BUG_ACCESS = _rule(BugAccessDeniedError, "Access to bug {bug_id} denied")
_EDIT_DENIED = _rule(BugEditAccessDeniedError, "Edit access to bug {bug_id} denied")
_CYCLIC_DUPLICATE = _rule(CyclicBugDuplicateError)

FAULT_TABLE: dict[Operation, FaultMapping] = {
    Operation.GET_BUG: FaultMapping(
        description="getting bug",
        rules=_rules(((100, 101), _INVALID_BUG), ((102,), _BUG_ACCESS)),
    ),
    Operation.SEARCH_BUGS: FaultMapping(description="searching for bugs"),
    Operation.CREATE_BUG: FaultMapping(
        description="creating bug",
        rules=_rules(
            ((51, 105, 106), _rule(InvalidObjectError)),
            ((103, 104, 107), _rule(InvalidBugFieldValueError)),
            ((116,), _rule(CyclicBugDependenciesError)),
            ((120,), _rule(GroupEditAccessDeniedError)),
            ((504,), _rule(InvalidUserError)),
        ),
    ),
    Operation.UPDATE_BUG: FaultMapping(
        description="updating bug",
        rules=_rules(
            ((50, 52, 54, 55, 56, 112), _rule(InvalidBugFieldValueError)),
            ((115,), _EDIT_DENIED),
            ((116,), _rule(CyclicBugDependenciesError)),
            ((118,), _CYCLIC_DUPLICATE),
            ((119, 121, 122), _rule(InvalidBugResolutionChangeError)),
            ((120,), _rule(GroupEditAccessDeniedError)),
            ((123,), _rule(InvalidBugStatusTransitionError)),
        ),
    ),
    Operation.ADD_COMMENT: FaultMapping(
        description="adding comment to bug",
        rules=_rules(
            ((100, 101), _INVALID_BUG),
            ((109,), _EDIT_DENIED),
            ((113,), _rule(InsufficientPrivilegesError)),
        ),
    ),
    Operation.GET_COMMENTS: FaultMapping(
        description="getting comments",
        rules=_rules(
            ((100, 101), _INVALID_BUG),
            ((102,), _BUG_ACCESS),
            ((110,), _rule(CommentAccessDeniedError)),
            ((111,), _rule(InvalidCommentIdError)),
        ),
    ),
    Operation.ADD_ATTACHMENT: FaultMapping(
        description="adding attachment",
        rules=_rules(
            ((100, 101), _INVALID_BUG),
            ((600,), _rule(AttachmentTooLargeError)),
            ((601,), _rule(InvalidMimeTypeError, "Invalid MIME type: {mime_type}")),
            ((602,), _rule(InvalidAttachmentUrlError)),
            ((605,), _rule(UrlAttachmentsDisabledError)),
        ),
    ),
    Operation.GET_ATTACHMENTS: FaultMapping(
        description="getting attachments",
        rules=_rules(
            ((100, 101), _INVALID_BUG),
            ((102,), _BUG_ACCESS),
            ((304,), _rule(AttachmentAccessDeniedError)),
        ),
    ),
    Operation.GET_HISTORY: FaultMapping(
        description="getting history for bug",
        rules=_rules(((100, 101), _INVALID_BUG), ((102,), _BUG_ACCESS)),
    ),
    Operation.UPDATE_SEE_ALSO: FaultMapping(
        description="updating see also field for bug",
        rules=_rules(
            ((100, 101), _INVALID_BUG),
            ((102,), _BUG_ACCESS),
            ((112,), _rule(InvalidSeeAlsoUrlError)),
            ((115,), _rule(SeeAlsoEditAccessDeniedError)),
            ((119,), _EDIT_DENIED),
        ),
    ),
    Operation.RESET_ASSIGNED_TO: FaultMapping(
        description="resetting the assigned to field",
        rules=_rules(((115,), _EDIT_DENIED)),
    ),
    Operation.RESET_QA_CONTACT: FaultMapping(
        description="resetting the QA contact",
        rules=_rules(((115,), _EDIT_DENIED)),
    ),
    Operation.SET_REMAINING_TIME: FaultMapping(
        description="setting the number of hours work remaining",
        rules=_rules(((115,), _EDIT_DENIED)),
    ),
    Operation.UPDATE_HOURS_WORKED: FaultMapping(
        description="updating number of hours worked",
        rules=_rules(((115,), _EDIT_DENIED)),
    ),
    Operation.SET_COMMENT_PRIVACY: FaultMapping(
        description="toggling comments privacy statuses",
        rules=_rules(((115,), _EDIT_DENIED)),
    ),
    Operation.UPDATE_KEYWORDS: FaultMapping(
        description="updating bug keywords",
        rules=_rules(((51,), _rule(InvalidKeywordError)), ((115,), _EDIT_DENIED)),
    ),
    Operation.UPDATE_CC_LIST: FaultMapping(
        description="updating bug CC list",
        rules=_rules(((51,), _rule(InvalidUserError)), ((115,), _EDIT_DENIED)),
    ),
    Operation.UPDATE_DEPENDENCIES: FaultMapping(
        description="updating bug dependencies",
        rules=_rules(
            ((115,), _EDIT_DENIED),
            ((116,), _rule(CyclicBugDependenciesError)),
        ),
    ),
    Operation.MARK_AS_DUPLICATE: FaultMapping(
        description="marking bug as duplicate",
        rules=_rules(((115,), _EDIT_DENIED), ((118,), _CYCLIC_DUPLICATE)),
    ),
    Operation.GET_FIELDS: FaultMapping(description="getting bug fields"),
    Operation.LOGIN: FaultMapping(
        description="logging in",
        rules=_rules(
            ((300,), _rule(InvalidLoginDetailsError, "Invalid username or password")),
            ((301,), _rule(DisabledAccountError)),
            ((305,), _rule(ExpiredPasswordError)),
        ),
    ),
    Operation.LOGOUT: FaultMapping(description="logging out"),
    Operation.CREATE_USER: FaultMapping(
        description="creating user",
        rules=_rules(
            ((500,), _rule(DuplicateAccountError)),
            ((501,), _rule(IllegalEmailAddressError)),
            ((502,), _rule(PasswordTooShortError)),
        ),
    ),
    Operation.SEARCH_USERS: FaultMapping(
        description="getting users",
        rules=_rules(
            ((51,), _rule(InvalidLoginOrGroupNameError)),
            ((304,), _rule(UserAccessDeniedError)),
            ((505,), _rule(UserMatchingDeniedError)),
        ),
    ),
    Operation.OFFER_ACCOUNT: FaultMapping(
        description="offering account by email",
        rules=_rules(
            ((500,), _rule(DuplicateAccountError)),
            ((501,), _rule(IllegalEmailAddressError)),
        ),
    ),
    Operation.GET_PRODUCTS: FaultMapping(description="getting products"),
    Operation.LIST_PRODUCTS: FaultMapping(description="listing products"),
    Operation.CREATE_PRODUCT: FaultMapping(
        description="creating product",
        rules=_rules(
            ((51,), _rule(InvalidObjectError)),
            ((700, 701, 703, 704, 705), _rule(InvalidProductDefinitionError)),
            ((702,), _rule(DuplicateProductNameError)),
        ),
    ),
    Operation.CREATE_GROUP: FaultMapping(
        description="creating group",
        rules=_rules(
            ((800, 802), _rule(InvalidGroupDefinitionError)),
            ((801,), _rule(DuplicateGroupNameError)),
            ((803,), _rule(InvalidGroupRegExpError)),
        ),
    ),
    Operation.GET_CLASSIFICATIONS: FaultMapping(description="getting classifications"),
    Operation.SERVER_INFO: FaultMapping(description="getting server information"),
}


class _TemplateContext(dict[str, Any]):
    def __missing__(self, key: str) -> str:
        return "?"


def _render(value: Any) -> Any:
    """Render an ID list as ``1, 2``; other values are formatted as they are."""
    if isinstance(value, (list, tuple, set, frozenset)):
        return ", ".join(str(item) for item in value)
    return value


def translate(
    operation: Operation,
    fault_code: int,
    fault_string: str,
    cause: Exception | None = None,
    **context: Any,
) -> FaultError:
    """Translate a server fault into the typed exception for ``operation``.

    Args:
        operation: The local operation that failed.
        fault_code: The server's numeric fault code.
        fault_string: The server's message, preserved on the exception.
        cause: The raw fault, chained as ``__cause__``.
        **context: Values for message templates, e.g. ``bug_id``.

    Returns:
        FaultError: The exception to raise. Unknown codes give
            ``OperationFailedError``.
    """
    mapping = FAULT_TABLE[operation]
    rule = mapping.rules.get(fault_code)
    if rule is None:
        return OperationFailedError(
            f"Error {mapping.description}. Details: {fault_string}",
            operation.value,
            fault_code,
            fault_string,
            context,
            cause,
        )
    message = rule.template.format_map(
        _TemplateContext(
            {k: _render(v) for k, v in context.items() if v is not None},
            message=fault_string,
        )
    )
    return rule.error(
        message, operation.value, fault_code, fault_string, context, cause
    )
