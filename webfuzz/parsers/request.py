from typing import Dict
from urllib.parse import urlsplit


class RawRequest:
    def __init__(self, requestFilename: str, proto: str = "https") -> None:
        """
        GET /FUZZ HTTP/1.1
        Host: example.com
        Content-Type: xxx

        data=xxx
        """

        self.method = ""
        self.url = ""
        self.headers: Dict[str, str] = {}
        self.body = b""
        self.proto = proto

        self.requestFilename = requestFilename

    def parse(self) -> Dict:

        with open(self.requestFilename, 'rb') as f:
            raw = f.read().replace(b"\r\n", b"\n")

        head, _, body_raw = raw.partition(b"\n\n")
        head = head.decode("utf-8", errors="surrogateescape")
        if not head.strip():
            raise ValueError("Request file is empty.")

        lines = head.split("\n")

        # Request line: METHOD SP TARGET SP HTTP/x.y
        parts0 = lines[0].split(" ")
        if len(parts0) < 3:
            raise ValueError(f"Malformed request line: {lines[0]!r}")
        self.method = parts0[0]
        target = parts0[1]

        # Headers
        self.headers = {}
        for line in lines[1:]:
            line = line.strip()
            if not line:
                break
            if ':' not in line:
                continue
            k, v = line.split(':', 1)
            if k.strip().lower() == "content-length":
                continue
            self.headers[k.strip()] = v.strip()

        if target.startswith("http"):
            self.url = target
            self.headers["Host"] = urlsplit(target).netloc
        else:
            host = self.headers.get("Host", self.headers.get("host", ""))
            if not host:
                raise ValueError("Host header missing from request file.")
            self.url = f"{self.proto}://{host}{target}"

        # Body, minus the single trailing newline editors tend to add
        if body_raw.endswith(b"\n"):
            body_raw = body_raw[:-1]
        self.body = body_raw

        return {
            'method': self.method,
            'url': self.url,
            'headers': self.headers,
            'body': self.body
        }

    def __str__(self) -> str:
        return f"Method: {self.method}\nURL: {self.url}\nHeaders: {self.headers}\nBody: {self.body!r}"
