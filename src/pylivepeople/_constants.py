"""Internal constants shared across the library."""

PEOPLE_URL = "https://people.example.com/v1"
PRESENCE_URL = "https://presence.example.com/v1"
USER_AGENT = "pylivepeople"

#: Push event name carrying presence changes for subscribed subjects.
PRESENCE_UPDATE_EVENT = "presence.subscription_update"

#: Key understood by the people service as "the access token bearer".
SELF_KEY = "me"
