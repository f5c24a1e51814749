"""Session with a remote Bugzilla server.

``BugzillaServer`` owns everything scoped to one connection: the transport
and call gateway, the login token, the custom field registry and the shape
cache. Operations validate their parameters locally where the limits are
static, marshal them through the call's shape, and unmarshal the result into
domain models. Server faults surface as the typed exceptions of the failing
operation.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import Any, Self

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from bugzilla_client.bug import Bug, check_comment, check_hours, check_summary
from bugzilla_client.core.config import ServerConfig, Settings, get_settings
from bugzilla_client.core.constants import DEADLINE_FORMAT
from bugzilla_client.core.exceptions import MalformedResponseError, PreconditionError
from bugzilla_client.domain.custom_fields import (
    CustomFieldDescriptor,
    CustomFieldRegistry,
    CustomFields,
)
from bugzilla_client.domain.models import (
    AttachmentCollection,
    BugFetchFault,
    BugFieldDetails,
    Classification,
    CommentCollection,
    Extension,
    Product,
    ServerTime,
    User,
)
from bugzilla_client.faults import Operation
from bugzilla_client.infrastructure.transport import Transport, XmlRpcTransport
from bugzilla_client.marshalling.params import CallParams
from bugzilla_client.marshalling.shapes import (
    ADD_ATTACHMENT_SHAPE,
    BUG_FIELDS_SHAPE,
    CREATE_GROUP_SHAPE,
    CREATE_PRODUCT_SHAPE,
    CREATE_USER_SHAPE,
    GET_ATTACHMENTS_SHAPE,
    GET_BUGS_SHAPE,
    GET_CLASSIFICATIONS_SHAPE,
    GET_COMMENTS_SHAPE,
    GET_PRODUCTS_SHAPE,
    GET_USERS_SHAPE,
    LOGIN_SHAPE,
    OFFER_ACCOUNT_SHAPE,
    SEARCH_BUGS_SHAPE,
    BaseKind,
    ShapeCache,
)
from bugzilla_client.marshalling.structured import Struct
from bugzilla_client.marshalling.unmarshaller import (
    ParsedBug,
    parse_attachments,
    parse_bugs,
    parse_classifications,
    parse_comments,
    parse_extensions,
    parse_fields,
    parse_ids,
    parse_products,
    parse_time,
    parse_users,
)
from bugzilla_client.rpc import RpcCaller
from bugzilla_client.utils.mime import guess_mime_type, read_attachment

# Keyword arguments of create_bug whose wire name differs
_CREATE_BUG_WIRE_NAMES = {"url": "bug_file_loc"}


class GetBugsResult(BaseModel):
    """Bugs returned by ``get_bugs``, and in permissive mode the failures."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    bugs: list[Bug] = Field(default_factory=list)
    faults: list[BugFetchFault] = Field(default_factory=list)


class BugzillaServer:
    """A session with one Bugzilla server.

    Args:
        transport: Transport performing the remote calls.
        api_key: API key sent with every call, if any.
        shape_cache: Cache of custom-field parameter shapes. A new one is
            created when not given.
        registry: Custom field registry. A new one is created when not given.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        api_key: str | None = None,
        shape_cache: ShapeCache | None = None,
        registry: CustomFieldRegistry | None = None,
    ) -> None:
        self.rpc = RpcCaller(transport, api_key)
        self.shapes = shape_cache or ShapeCache()
        self.custom_field_registry = registry or CustomFieldRegistry()
        self._user_id: int | None = None

    @classmethod
    def connect(cls, url: str | None = None, settings: Settings | None = None) -> Self:
        """Open a session using the configured server settings.

        Args:
            url: URL of the server's ``xmlrpc.cgi``, overriding the setting.
            settings: Settings to use instead of the cached global settings.

        Returns:
            BugzillaServer: A session that is not yet logged in.
        """
        config = (settings or get_settings()).server_config
        if url is not None:
            config = ServerConfig.model_validate({**config.model_dump(), "url": url})
        transport = XmlRpcTransport(
            config.url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            user_agent=config.user_agent,
        )
        logger.info("Connecting to Bugzilla at {}", config.url, url=config.url)
        return cls(transport, api_key=config.api_key)

    def close(self) -> None:
        self.rpc.transport.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # Authentication

    @property
    def logged_in(self) -> bool:
        return self._user_id is not None

    @property
    def user_id(self) -> int | None:
        """ID of the logged-in user, or None."""
        return self._user_id

    def login(self, user: str, password: str, remember: bool = False) -> int:
        """Log in and keep the session token for later calls.

        Args:
            user: Login name.
            password: Password.
            remember: Whether the server should keep the session cookie.

        Returns:
            int: ID of the logged-in user.

        Raises:
            PreconditionError: If an argument is empty or the session is
                already logged in.
            InvalidLoginDetailsError: If the credentials are wrong.
        """
        if not user:
            raise PreconditionError("user", "must not be empty")
        if not password:
            raise PreconditionError("password", "must not be empty")
        if self.logged_in:
            raise PreconditionError("user", "session is already logged in")

        params = (
            CallParams(LOGIN_SHAPE)
            .set("login", user)
            .set("password", password)
            .set("remember", remember)
        )
        result = self.rpc.invoke("User.login", params, Operation.LOGIN)
        self._user_id = result.require("id", int)
        self.rpc.token = result.optional("token", str)
        # Custom fields visible to the user may differ from the anonymous set
        self.custom_field_registry.reset()
        logger.info("Logged in as {}", user, user_id=self._user_id)
        return self._user_id

    def logout(self) -> None:
        """Log out. Does nothing if the session is not logged in."""
        if not self.logged_in:
            return
        try:
            self.rpc.call("User.logout", {}, Operation.LOGOUT)
        finally:
            self._user_id = None
            self.rpc.token = None
            self.custom_field_registry.reset()
        logger.info("Logged out")

    # Server information

    @property
    def version(self) -> str:
        result = self.rpc.call_struct("Bugzilla.version", {}, Operation.SERVER_INFO)
        return result.require("version", str)

    def time(self) -> ServerTime:
        result = self.rpc.call_struct("Bugzilla.time", {}, Operation.SERVER_INFO)
        return parse_time(result)

    def extensions(self) -> list[Extension]:
        result = self.rpc.call_struct("Bugzilla.extensions", {}, Operation.SERVER_INFO)
        return parse_extensions(result)

    def fields(self, names: Iterable[str] | None = None) -> list[BugFieldDetails]:
        """Return metadata for all bug fields, or only for ``names``."""
        params = CallParams(BUG_FIELDS_SHAPE).set_if_given("names", names)
        result = self.rpc.invoke("Bug.fields", params, Operation.GET_FIELDS)
        return parse_fields(result)

    @property
    def custom_fields(self) -> tuple[CustomFieldDescriptor, ...]:
        """The server's custom fields, fetched on first use."""
        return self.custom_field_registry.ensure_loaded(self.rpc)

    def new_custom_fields(self) -> CustomFields:
        """Blank custom field values, for filling in before ``create_bug``."""
        self.custom_field_registry.ensure_loaded(self.rpc)
        return self.custom_field_registry.blank_values()

    # Bugs

    def _parse_bugs(self, result: Struct) -> tuple[list[ParsedBug], list[BugFetchFault]]:
        self.custom_field_registry.ensure_loaded(self.rpc)
        return parse_bugs(result, self.custom_field_registry)

    def fetch_bug(self, bug_id: int | str) -> ParsedBug:
        """Load one bug's fields and custom field values.

        Args:
            bug_id: The bug's ID or alias.

        Returns:
            ParsedBug: The bug's fixed fields and custom field values.
        """
        params = CallParams(GET_BUGS_SHAPE).set("ids", [bug_id])
        result = self.rpc.invoke("Bug.get", params, Operation.GET_BUG, bug_id=bug_id)
        bugs, _ = self._parse_bugs(result)
        for info, custom_fields in bugs:
            if info.id == bug_id or str(bug_id) in info.alias:
                return info, custom_fields
        if len(bugs) == 1:
            return bugs[0]
        raise MalformedResponseError(f"bug {bug_id} missing from response", result.path)

    def get_bug(self, bug_id: int | str, fetch: bool = True) -> Bug:
        """Return a bug by ID or alias.

        Args:
            bug_id: The bug's ID, or its alias when ``fetch`` is True.
            fetch: If False, return a handle whose fields load on first read.

        Raises:
            InvalidBugIdOrAliasError: If no such bug exists.
            BugAccessDeniedError: If the bug is not accessible.
        """
        if not fetch:
            if not isinstance(bug_id, int):
                raise PreconditionError("bug_id", "a numeric ID is required without fetch")
            return Bug(self, bug_id)
        info, custom_fields = self.fetch_bug(bug_id)
        return Bug(self, info.id, info, custom_fields)

    def get_bugs(
        self, bug_ids: Iterable[int | str], permissive: bool = False
    ) -> GetBugsResult:
        """Return several bugs.

        In permissive mode, bugs that cannot be returned are reported in
        ``faults`` instead of failing the whole call.
        """
        ids = list(bug_ids)
        if not ids:
            raise PreconditionError("bug_ids", "at least one bug ID is required")
        params = (
            CallParams(GET_BUGS_SHAPE).set("ids", ids).set("permissive", permissive)
        )
        result = self.rpc.invoke("Bug.get", params, Operation.GET_BUG, bug_id=ids)
        bugs, faults = self._parse_bugs(result)
        return GetBugsResult(
            bugs=[Bug(self, info.id, info, custom) for info, custom in bugs],
            faults=faults,
        )

    def search_bugs(self, **criteria: Any) -> list[Bug]:
        """Search for bugs.

        Args:
            **criteria: Search fields such as ``product``, ``status`` or
                ``assigned_to``; list values match any of their items.
                ``limit`` and ``offset`` page the results.
        """
        if not criteria:
            raise PreconditionError("criteria", "at least one criterion is required")
        params = CallParams(SEARCH_BUGS_SHAPE, criteria)
        result = self.rpc.invoke("Bug.search", params, Operation.SEARCH_BUGS)
        bugs, _ = self._parse_bugs(result)
        return [Bug(self, info.id, info, custom) for info, custom in bugs]

    def create_bug(
        self,
        product: str,
        component: str,
        summary: str,
        version: str,
        custom_fields: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> int:
        """Create a bug.

        Args:
            product: Product name.
            component: Component name.
            summary: One-line summary, at most 255 characters.
            version: Product version.
            custom_fields: Custom field name to value.
            **fields: Optional fields such as ``description``, ``severity``,
                ``cc``, ``estimated_time`` or ``url``.

        Returns:
            int: ID of the new bug.

        Raises:
            PreconditionError: If a field is unknown or violates a limit.
            InvalidObjectError: If a product, component or user does not exist.
        """
        for name, value in (("product", product), ("component", component), ("version", version)):
            if not value:
                raise PreconditionError(name, "must not be empty")
        check_summary(summary)
        check_comment(fields.get("description"), "description")
        check_hours(fields.get("estimated_time"), "estimated_time")
        deadline = fields.get("deadline")
        if isinstance(deadline, datetime):
            fields["deadline"] = deadline.strftime(DEADLINE_FORMAT)

        descriptors: Iterable[CustomFieldDescriptor] = ()
        if custom_fields:
            descriptors = self.custom_field_registry.ensure_loaded(self.rpc)
        shape = self.shapes.shape_for(BaseKind.CREATE_BUG, descriptors)

        params = (
            CallParams(shape)
            .set("product", product)
            .set("component", component)
            .set("summary", summary)
            .set("version", version)
        )
        for name, value in fields.items():
            params.set_if_given(_CREATE_BUG_WIRE_NAMES.get(name, name), value)
        for name, value in (custom_fields or {}).items():
            slot = shape.slot(name)
            if slot is None or not slot.custom:
                raise PreconditionError(name, "not a custom field of this server")
            params.set(name, value)

        result = self.rpc.invoke("Bug.create", params, Operation.CREATE_BUG)
        bug_id = result.require("id", int)
        logger.info("Created bug {}", bug_id, product=product, component=component)
        return bug_id

    # Comments and attachments

    def get_comments(
        self,
        bug_ids: Iterable[int | str] | None = None,
        comment_ids: Iterable[int] | None = None,
        new_since: datetime | None = None,
    ) -> CommentCollection:
        """Return comments of bugs and specific comments by ID."""
        if bug_ids is None and comment_ids is None:
            raise PreconditionError(
                "bug_ids/comment_ids", "at least one bug or comment ID is required"
            )
        bug_ids = list(bug_ids) if bug_ids is not None else None
        params = (
            CallParams(GET_COMMENTS_SHAPE)
            .set_if_given("ids", bug_ids)
            .set_if_given("comment_ids", comment_ids)
            .set_if_given("new_since", new_since)
        )
        result = self.rpc.invoke(
            "Bug.comments", params, Operation.GET_COMMENTS, bug_id=bug_ids
        )
        return parse_comments(result)

    def get_attachments(
        self,
        bug_ids: Iterable[int | str] | None = None,
        attachment_ids: Iterable[int] | None = None,
    ) -> AttachmentCollection:
        """Return attachments of bugs and specific attachments by ID."""
        if bug_ids is None and attachment_ids is None:
            raise PreconditionError(
                "bug_ids/attachment_ids",
                "at least one bug or attachment ID is required",
            )
        bug_ids = list(bug_ids) if bug_ids is not None else None
        params = (
            CallParams(GET_ATTACHMENTS_SHAPE)
            .set_if_given("ids", bug_ids)
            .set_if_given("attachment_ids", attachment_ids)
        )
        result = self.rpc.invoke(
            "Bug.attachments", params, Operation.GET_ATTACHMENTS, bug_id=bug_ids
        )
        return parse_attachments(result)

    def add_attachment_to_bugs(
        self,
        bug_ids: Iterable[int | str],
        data: bytes,
        file_name: str,
        summary: str,
        *,
        mime_type: str | None = None,
        comment: str | None = None,
        is_patch: bool = False,
        is_private: bool = False,
    ) -> list[int]:
        """Attach the same data to each of ``bug_ids``.

        The MIME type is guessed from the file name and content when not
        given.

        Returns:
            list[int]: IDs of the new attachments.
        """
        ids = list(bug_ids)
        if not ids:
            raise PreconditionError("bug_ids", "at least one bug ID is required")
        if not data:
            raise PreconditionError("data", "attachment data must not be empty")
        if not file_name:
            raise PreconditionError("file_name", "must not be empty")
        if not summary:
            raise PreconditionError("summary", "must not be empty")
        check_comment(comment)
        mime_type = mime_type or guess_mime_type(data, file_name)

        params = (
            CallParams(ADD_ATTACHMENT_SHAPE)
            .set("ids", ids)
            .set("data", data)
            .set("file_name", file_name)
            .set("summary", summary)
            .set("content_type", mime_type)
            .set_if_given("comment", comment)
            .set("is_patch", is_patch)
            .set("is_private", is_private)
        )
        result = self.rpc.invoke(
            "Bug.add_attachment",
            params,
            Operation.ADD_ATTACHMENT,
            bug_id=ids,
            mime_type=mime_type,
        )
        if result.has("ids"):
            return parse_ids(result)
        # Servers before 4.4 return the new attachments keyed by ID
        return [int(key) for key in result.struct("attachments")]

    def add_attachment_file_to_bugs(
        self,
        bug_ids: Iterable[int | str],
        path: str | Path,
        summary: str,
        *,
        mime_type: str | None = None,
        comment: str | None = None,
        is_patch: bool = False,
        is_private: bool = False,
    ) -> list[int]:
        """Attach a file from disk to each of ``bug_ids``."""
        data, file_name = read_attachment(path)
        return self.add_attachment_to_bugs(
            bug_ids,
            data,
            file_name,
            summary,
            mime_type=mime_type,
            comment=comment,
            is_patch=is_patch,
            is_private=is_private,
        )

    # Users

    def create_user(
        self, email: str, password: str | None = None, full_name: str | None = None
    ) -> int:
        """Create a user account and return its ID."""
        if not email:
            raise PreconditionError("email", "must not be empty")
        params = (
            CallParams(CREATE_USER_SHAPE)
            .set("email", email)
            .set_if_given("password", password)
            .set_if_given("full_name", full_name)
        )
        result = self.rpc.invoke("User.create", params, Operation.CREATE_USER)
        return result.require("id", int)

    def search_users(
        self,
        ids: Iterable[int] | None = None,
        names: Iterable[str] | None = None,
        match: Iterable[str] | None = None,
        group_ids: Iterable[int] | None = None,
        groups: Iterable[str] | None = None,
        include_disabled: bool = False,
    ) -> list[User]:
        """Find users by ID, login name or partial match.

        At least one of ``ids``, ``names`` or ``match`` is required; the
        group arguments only narrow the result.
        """
        if not any((ids, names, match)):
            raise PreconditionError(
                "ids/names/match", "at least one user ID, login name or match is required"
            )
        params = (
            CallParams(GET_USERS_SHAPE)
            .set_if_given("ids", ids)
            .set_if_given("names", names)
            .set_if_given("match", match)
            .set_if_given("group_ids", group_ids)
            .set_if_given("groups", groups)
            .set("include_disabled", include_disabled)
        )
        result = self.rpc.invoke("User.get", params, Operation.SEARCH_USERS)
        return parse_users(result)

    def offer_account_by_email(self, email: str) -> None:
        """Ask the server to email an account creation link to ``email``."""
        if not email:
            raise PreconditionError("email", "must not be empty")
        params = CallParams(OFFER_ACCOUNT_SHAPE).set("email", email)
        self.rpc.invoke("User.offer_account_by_email", params, Operation.OFFER_ACCOUNT)

    # Products, classifications and groups

    def get_products(
        self, ids: Iterable[int] | None = None, names: Iterable[str] | None = None
    ) -> list[Product]:
        params = (
            CallParams(GET_PRODUCTS_SHAPE)
            .set_if_given("ids", ids)
            .set_if_given("names", names)
        )
        result = self.rpc.invoke("Product.get", params, Operation.GET_PRODUCTS)
        return parse_products(result)

    def get_product(self, product_id: int) -> Product:
        products = self.get_products(ids=[product_id])
        for product in products:
            if product.id == product_id:
                return product
        raise MalformedResponseError(f"product {product_id} missing from response", "Product.get")

    def _listed_products(self, method: str) -> list[Product]:
        result = self.rpc.call_struct(method, {}, Operation.LIST_PRODUCTS)
        ids = parse_ids(result)
        if not ids:
            return []
        return self.get_products(ids=ids)

    def selectable_products(self) -> list[Product]:
        """Products the user can search on."""
        return self._listed_products("Product.get_selectable_products")

    def enterable_products(self) -> list[Product]:
        """Products the user can file bugs against."""
        return self._listed_products("Product.get_enterable_products")

    def accessible_products(self) -> list[Product]:
        """Products the user can search or file bugs against."""
        return self._listed_products("Product.get_accessible_products")

    def create_product(
        self,
        name: str,
        description: str,
        version: str,
        *,
        has_unconfirmed: bool | None = None,
        classification: str | None = None,
        default_milestone: str | None = None,
        is_open: bool | None = None,
        create_series: bool | None = None,
    ) -> int:
        """Create a product and return its ID."""
        for parameter, value in (("name", name), ("description", description), ("version", version)):
            if not value:
                raise PreconditionError(parameter, "must not be empty")
        params = (
            CallParams(CREATE_PRODUCT_SHAPE)
            .set("name", name)
            .set("description", description)
            .set("version", version)
            .set_if_given("has_unconfirmed", has_unconfirmed)
            .set_if_given("classification", classification)
            .set_if_given("default_milestone", default_milestone)
            .set_if_given("is_open", is_open)
            .set_if_given("create_series", create_series)
        )
        result = self.rpc.invoke("Product.create", params, Operation.CREATE_PRODUCT)
        return result.require("id", int)

    def get_classifications(
        self, ids: Iterable[int] | None = None, names: Iterable[str] | None = None
    ) -> list[Classification]:
        if ids is None and names is None:
            raise PreconditionError("ids/names", "at least one ID or name is required")
        params = (
            CallParams(GET_CLASSIFICATIONS_SHAPE)
            .set_if_given("ids", ids)
            .set_if_given("names", names)
        )
        result = self.rpc.invoke(
            "Classification.get", params, Operation.GET_CLASSIFICATIONS
        )
        return parse_classifications(result)

    def create_group(
        self,
        name: str,
        description: str,
        *,
        user_regexp: str | None = None,
        is_active: bool | None = None,
        icon_url: str | None = None,
    ) -> int:
        """Create a group and return its ID."""
        if not name:
            raise PreconditionError("name", "must not be empty")
        if not description:
            raise PreconditionError("description", "must not be empty")
        params = (
            CallParams(CREATE_GROUP_SHAPE)
            .set("name", name)
            .set("description", description)
            .set_if_given("user_regexp", user_regexp)
            .set_if_given("is_active", is_active)
            .set_if_given("icon_url", icon_url)
        )
        result = self.rpc.invoke("Group.create", params, Operation.CREATE_GROUP)
        return result.require("id", int)
