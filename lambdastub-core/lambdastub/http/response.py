from rolo import Response as RoloResponse


class Response(RoloResponse):
    """
    An HTTP Response object, which simply extends werkzeug's Response object with a few convenience methods.
    """

    def close_connection(self) -> "Response":
        """
        Marks the response as non-persistent, the server closes the connection once the response was written.
        """
        self.headers["Connection"] = "close"
        return self
