"""Run the session API: python3 -m cognito_session"""

import uvicorn

from cognito_session.config import settings


def main() -> None:
    uvicorn.run(
        "cognito_session.api.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
