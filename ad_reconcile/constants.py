#: Object classes for new user objects.
USER_OBJ_CLASSES = ("top", "person", "organizationalPerson", "user")
#: Object classes for new group objects.
GROUP_OBJ_CLASSES = ("top", "group")

#: Object class used in filters to find users.
OBJ_CLASS_USER = "user"
#: Object class used in filters to find groups.
OBJ_CLASS_GROUP = "group"

#: Attribute holding the group members.
ATTR_MEMBER = "member"
#: Description attribute.
ATTR_DESCRIPTION = "description"
#: Password attribute, only ever written.
ATTR_UNICODE_PWD = "unicodepwd"

#: Attributes fetched for user objects.
USER_ATTRIBUTES = (
    "objectClass",
    "cn",
    "givenName",
    "sn",
    "displayName",
    "sAMAccountName",
    "mail",
    "description",
)
#: Attributes fetched for group objects.
GROUP_ATTRIBUTES = (
    "objectClass",
    "cn",
    "sAMAccountName",
    "description",
    "member",
)
#: Wildcard for fetching all user attributes.
ALL_ATTRIBUTES = "*"

#: ``userAccountControl`` for a normal, enabled account.
UAC_NORMAL_ACCOUNT = "512"
#: ``userAccountControl`` for a normal account without password.
UAC_NORMAL_ACCOUNT_PASSWD_NOTREQD = "544"

#: LDAP result code: success.
RESULT_SUCCESS = 0
#: LDAP result code: no such object.
RESULT_NO_SUCH_OBJECT = 32
#: LDAP result code: entry already exists.
RESULT_ENTRY_ALREADY_EXISTS = 68

#: Search scope for whole subtrees.
SCOPE_SUBTREE = "subtree"
#: Search scope for the base object only.
SCOPE_BASE = "base"
