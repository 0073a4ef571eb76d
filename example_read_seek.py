import httpx

from http_readseeker import HttpReadSeeker, set_up_logging

url = "https://github.com/lmmx/range-streams/raw/master/data/example_text_file.txt.zip"

if __name__ == "__main__":
    set_up_logging(quiet=False)
    with httpx.Client(follow_redirects=True) as client:
        with HttpReadSeeker.open(url, client=client) as s:
            print(f"Length: {s.total_bytes=}")
            print(f"First 4 bytes: {s.read(4)=}")
            s.seek(-22, 2)  # Moves the position, but does no range request
            print(f"End of central directory: {s.read(22)=}")
            print(f"{s.request_count=}")
