"""
Exceptions raised by the admin engine
"""


class AdminError(Exception):
    """Base class for admin engine errors"""


class AuthorizationDenied(AdminError):
    """The role may not perform the action on the resource"""

    def __init__(self, role, resource_name, action):
        self.role = role
        self.resource_name = resource_name
        self.action = action
        super().__init__(f'Role {role!r} may not {action!r} on {resource_name!r}')


class ResourceNotFound(AdminError):
    """No resource (or page) is registered under the name"""

    def __init__(self, name):
        self.name = name
        super().__init__(f'Resource {name!r} is not registered')


class StorageError(AdminError):
    """A repository round-trip failed; carries the operation and resource for debugging"""

    def __init__(self, operation, resource_name, detail=None):
        self.operation = operation
        self.resource_name = resource_name
        self.detail = detail
        message = f'{operation} on {resource_name} failed'
        if detail:
            message = f'{message}: {detail}'
        super().__init__(message)


class RegistrationError(AdminError):
    """The registry was configured inconsistently (duplicate name, unknown target)"""
