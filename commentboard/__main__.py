import os
import sys

import uvicorn

# python -m commentboard          the site, with the proxy mounted at /store
# python -m commentboard proxy    the proxy alone
if __name__ == "__main__":
    target = "create_standalone_proxy" if sys.argv[1:] == ["proxy"] else "create_app"
    uvicorn.run(
        f"commentboard.main:{target}",
        factory=True,
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", 8000)),
    )
