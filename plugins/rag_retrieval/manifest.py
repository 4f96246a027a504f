PLUGIN_MANIFEST = {
    "id": "rag-retrieval",
    "name": "RAG Document Assistant",
    "version": "1.0.0",
    "category": "system",
    "description": "Chat with uploaded documents through retrieval-augmented generation",
    "config": {
        "chunk_size": 1000,
        "chunk_overlap": 200,
        "top_k": 5,
    },
    "permissions": [
        {
            "permission_name": "rag.chat.create",
            "resource_type": "action",
            "description": "Create chat sessions and send messages",
        },
        {
            "permission_name": "rag.document.upload",
            "resource_type": "action",
            "description": "Upload documents to RAG system",
        },
        {
            "permission_name": "rag.collection.manage",
            "resource_type": "action",
            "description": "Manage document collections",
        },
        {
            "permission_name": "rag.configure",
            "resource_type": "action",
            "is_system_level": True,
            "description": "Configure RAG system settings",
        },
    ],
    "apis": [
        {
            "api_path": "/api/rag/query",
            "http_method": "POST",
            "description": "Answer a question from indexed documents",
            "required_permissions": ["rag.chat.create"],
        },
        {
            "api_path": "/api/rag/documents",
            "http_method": "POST",
            "description": "Index a document on behalf of another plugin",
            "required_permissions": ["rag.document.upload"],
        },
    ],
}
