"""Media types written by the wrapper."""

JSON_MEDIA_TYPE = "application/json"
PROBLEM_JSON_MEDIA_TYPE = "application/problem+json"
PROBLEM_XML_MEDIA_TYPE = "application/problem+xml"
PLAIN_TEXT_MEDIA_TYPE = "text/plain"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"
