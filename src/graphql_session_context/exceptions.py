"""Exception hierarchy for GraphQL session context errors."""


class GraphQLContextError(Exception):
    """Base exception for all GraphQL session context errors.

    This is the parent class for all exceptions raised by the
    graphql-session-context package. Catching this exception
    will catch all context-related errors.

    Example:
        try:
            builder = setup(schema=schema, session_store=store)
        except GraphQLContextError as e:
            logger.error(f"Failed to configure GraphQL context: {e}")
    """


class ConfigurationError(GraphQLContextError):
    """Raised when the context builder is configured with invalid options.

    This exception is raised once, at setup time, never per request:
        - The schema is missing
        - The schema is not a GraphQLSchema instance
        - The session store does not implement first()/find()
        - The query factory is not callable

    Example:
        ConfigurationError("schema must be a GraphQLSchema instance, got str")
    """


class SessionLookupError(GraphQLContextError):
    """Raised when a session store fails to look up a session token.

    Stores raise this (or a subclass) when a lookup cannot be served.
    The context builder propagates it unchanged to whoever awaits the
    per-request options, and never replaces it with an anonymous context.

    Example:
        SessionLookupError("session store unavailable")
    """


class PermissionDeniedError(SessionLookupError):
    """Raised when a session store refuses a read for the given privileges.

    Example:
        PermissionDeniedError("Class '_Session' requires the master key")
    """
