import redis
from ZBlog_Core.zblog_shared import errors, config
from ZBlog_Core.zblog_shared.types import HealthStatus


def _create_client(db: int) -> redis.Redis:
    return redis.Redis(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        db=db,
        decode_responses=False,
        socket_connect_timeout=config.REDIS_SOCKET_TIMEOUT,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT,
    )


def create_content_client() -> redis.Redis:
    r = _create_client(config.REDIS_CONTENT_DB)
    try:
        r.ping()
    except redis.exceptions.ConnectionError:
        raise errors.ContentStoreUnavailableError(f"Cannot connect to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
    return r


def create_signature_client() -> redis.Redis:
    r = _create_client(config.REDIS_SIGNATURE_DB)
    try:
        r.ping()
    except redis.exceptions.ConnectionError:
        raise errors.ContentStoreUnavailableError(f"Cannot connect to Redis at {config.REDIS_HOST}:{config.REDIS_PORT}")
    return r


def _probe(client) -> tuple[bool, int, float]:
    """(reachable, key count, uptime); INFO may be restricted, so uptime is best effort."""
    try:
        ok = client.ping()
        keys = client.dbsize()
    except redis.exceptions.RedisError:
        return False, 0, 0.0

    try:
        uptime = float(client.info().get('uptime_in_seconds', 0))
    except redis.exceptions.RedisError:
        uptime = 0.0
    return ok, keys, uptime


def health_check(content_client, signature_client) -> HealthStatus:
    content_ok, content_keys, content_uptime = _probe(content_client)
    signature_ok, signature_keys, signature_uptime = _probe(signature_client)
    uptime = content_uptime + signature_uptime

    return HealthStatus(
        content_connected=content_ok,
        signature_connected=signature_ok,
        content_key_count=content_keys,
        signature_key_count=signature_keys,
        uptime_seconds=uptime,
    )


def close_all(content_client, signature_client) -> None:
    content_client.close()
    signature_client.close()
