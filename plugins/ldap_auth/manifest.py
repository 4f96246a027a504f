PLUGIN_MANIFEST = {
    "id": "ldap-auth",
    "name": "LDAP Authentication",
    "version": "1.0.0",
    "category": "system",
    "description": "Authenticate users against an LDAP directory",
    "config": {
        "server_url": "",
        "base_dn": "",
        "user_search_filter": "(uid={username})",
        "use_tls": True,
    },
    "permissions": [
        {
            "permission_name": "ldap.authenticate",
            "resource_type": "action",
            "is_system_level": True,
            "description": "Authenticate users via LDAP",
        },
        {
            "permission_name": "ldap.configure",
            "resource_type": "action",
            "is_system_level": True,
            "description": "Configure LDAP server settings",
        },
        {
            "permission_name": "ldap.users.read",
            "resource_type": "data",
            "description": "Read user information from LDAP",
        },
    ],
}
