"""Content chunking service"""


class Chunker:
    """Split remembered text into sentence-like chunks on period boundaries

    This is a naive heuristic: abbreviations and decimal numbers are split
    like any other period.
    """

    def __init__(self, delimiter: str = "."):
        self.delimiter = delimiter

    def chunk(self, content: str) -> list[str]:
        """
        Split content into retrievable chunks

        Args:
            content: Text to chunk

        Returns:
            list[str]: Stripped, non-empty chunks in original order
        """
        chunks = []
        for segment in content.strip().split(self.delimiter):
            segment = segment.strip()
            if segment:
                chunks.append(segment)

        return chunks
