SHOP_LIST_PATH = "/chat/api/comp/comp-chat-shop"
SESSION_LIST_PATH = "/chat/api/comp/chat-process/get-session-list"
REPLY_MESSAGE_PATH = "/chat/api/comp/chat-process/reply-message"

TEXT_TEMPLATE_ID = "00"
IMAGE_TEMPLATE_ID = "01"

# Session list filter used by the vendor web console for open conversations.
OPEN_SESSION_STATUS = 3

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/140.0.0.0 Safari/537.36"
)


def api_headers(auth_token: str) -> dict[str, str]:
    return {
        "accept": "application/json, text/plain, */*",
        "authorization": f"Bearer {auth_token}",
        "c": "02",
        "locale": "en_US",
        "time-zone": "+0700",
        "user-agent": BROWSER_USER_AGENT,
        "x-requested-with": "XMLHttpRequest",
        "content-type": "application/json",
    }
