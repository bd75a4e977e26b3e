# Client identity resolution for rate limiting.

from fastapi import Request

UNKNOWN_CLIENT = "unknown"

def get_client_ip(request: Request) -> str:
    """
    Extracts the client's IP address from the request.
    Assumes a standard proxy setup where the originating client is the
    first hop of 'x-forwarded-for'. Requests that carry no usable address
    share the "unknown" bucket.
    """
    x_forwarded_for = request.headers.get("x-forwarded-for")
    if x_forwarded_for:
        first_hop = x_forwarded_for.split(',')[0].strip()
        if first_hop:
            return first_hop

    x_real_ip = request.headers.get("x-real-ip")
    if x_real_ip and x_real_ip.strip():
        return x_real_ip.strip()

    return request.client.host if request.client else UNKNOWN_CLIENT
