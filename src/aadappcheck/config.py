import os
import tempfile

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Azure AD Graph
    GRAPH_DOMAIN = os.getenv("AADAPPCHECK_GRAPH_DOMAIN", "https://graph.windows.net")
    API_VERSION = os.getenv("AADAPPCHECK_API_VERSION", "1.6")

    # Login (the appcheck app registration itself)
    AUTHORITY = os.getenv("AADAPPCHECK_AUTHORITY", "https://login.microsoftonline.com/common")
    RESOURCE = os.getenv("AADAPPCHECK_RESOURCE", "https://graph.windows.net")
    CLIENT_ID = os.getenv("AADAPPCHECK_CLIENT_ID", "f4c23407-9821-405f-912b-e07ea6a29f7b")
    REDIRECT_URI = os.getenv("AADAPPCHECK_REDIRECT_URI", "http://localhost/appcheck")

    # Token storage, one file per machine
    TOKEN_FILE = os.getenv(
        "AADAPPCHECK_TOKEN_FILE", os.path.join(tempfile.gettempdir(), "aadappcheck.json")
    )

    @property
    def SCOPES(self) -> list[str]:
        return [f"{self.RESOURCE}/.default"]


config = Config()
