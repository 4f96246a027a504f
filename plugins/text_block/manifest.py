PLUGIN_MANIFEST = {
    "id": "text-block",
    "name": "Text Block",
    "version": "1.0.0",
    "category": "system",
    "description": "A simple text block plugin",
    "permissions": [
        {
            "permission_name": "text-block.configure",
            "resource_type": "action",
            "is_system_level": True,
            "description": "Configure text block plugin settings",
        },
        {
            "permission_name": "text-block.create",
            "resource_type": "action",
            "description": "Create new text blocks",
        },
        {
            "permission_name": "text-block.read",
            "resource_type": "data",
            "description": "Read text block content",
        },
    ],
}
