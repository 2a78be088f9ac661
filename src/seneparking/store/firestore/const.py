"""Constants for the Firestore REST store."""

DEFAULT_BASE_URL = "https://firestore.googleapis.com"
DEFAULT_DATABASE = "(default)"

DOCUMENTS_ROOT = "/v1/projects/{project_id}/databases/{database}/documents"
COLLECTION_ENDPOINT = DOCUMENTS_ROOT + "/{collection}"
DOCUMENT_ENDPOINT = DOCUMENTS_ROOT + "/{collection}/{document_id}"
RUN_QUERY_ENDPOINT = DOCUMENTS_ROOT + ":runQuery"

PAGE_SIZE = 300
MAX_PAGES = 50

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "User-Agent": "seneparking",
}
