# src/app.py
from wsgiref.simple_server import make_server
from datetime import timedelta
import json
import logging
import re
import sys

from src.config import Config, load_config
from src.database.database import create_db_engine, create_session_factory
from src.database.db_init import initialize_db
from src.repositories.sqlalchemy.sqlalchemy_image_repository import SqlalchemyImageRepository
from src.repositories.sqlalchemy.sqlalchemy_user_repository import SqlalchemyUserRepository
from src.services.access_policy import AccessPolicy
from src.services.access_service import AccessService
from src.services.credential_manager import CredentialManager
from src.services.metadata_store import MetadataStore
from src.services.metrics_cache import MetricsCache, create_redis_client
from src.services.registry_client import RegistryClient
from src.services.exceptions import *
from src.utils.logging_setup import setup_logging
from src.utils.password_hasher import PasswordHasher

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

# --------------------------------------------------------------------------
## 요청 처리 유틸리티 함수
# --------------------------------------------------------------------------

def get_request_data(environ):
    try:
        content_length = int(environ.get("CONTENT_LENGTH") or 0)
        data = json.loads(environ["wsgi.input"].read(content_length)) if content_length > 0 else {}
    except (ValueError, json.JSONDecodeError):
        raise ValidationError("Invalid or missing JSON body.")
    if not isinstance(data, dict):
        raise ValidationError("JSON body must be an object.")
    return data

def require_fields(data, *names):
    missing = [name for name in names if data.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}.")
    return [data[name] for name in names]

def get_authorization(environ):
    return environ.get("HTTP_AUTHORIZATION")

def handle_exception(e):
    error_map = {
        TokenInvalidError: ("401 Unauthorized", "unauthorized"),
        AuthenticationError: ("401 Unauthorized", "unauthorized"),
        PermissionDeniedError: ("403 Forbidden", "forbidden"),
        NotFoundError: ("404 Not Found", "resource not found"),
        ConflictError: ("409 Conflict", "already exists"),
        ValidationError: ("400 Bad Request", "invalid request"),
        StoreUnavailableError: ("503 Service Unavailable", "internal error"),
    }
    for cls in type(e).__mro__:
        if cls in error_map:
            status, label = error_map[cls]
            break
    else:
        status, label = "500 Internal Server Error", "internal error"

    if status.startswith("5"):
        logger.error("Request failed: %s", e, exc_info=e)
        return status, json.dumps({"error": label})
    return status, json.dumps({"error": label, "detail": str(e)})

# --------------------------------------------------------------------------
## 핸들러 함수
# --------------------------------------------------------------------------

def list_images_handler(environ, *args):
    images = environ['services']['access'].list_images(get_authorization(environ))
    return '200 OK', json.dumps(images)

def create_image_handler(environ, *args):
    data = get_request_data(environ)
    name, = require_fields(data, 'name')
    image = environ['services']['access'].create_image(
        get_authorization(environ), name, data.get('description', ''), bool(data.get('public', False))
    )
    return '201 Created', json.dumps(image)

def get_image_handler(environ, name):
    image = environ['services']['access'].get_image(get_authorization(environ), name)
    return '200 OK', json.dumps(image)

def list_tags_handler(environ, name):
    tags = environ['services']['access'].list_tags(get_authorization(environ), name)
    return '200 OK', json.dumps(tags)

def publish_tag_handler(environ, name, tag):
    data = get_request_data(environ)
    digest, size = require_fields(data, 'digest', 'size')
    record = environ['services']['access'].publish_tag(get_authorization(environ), name, tag, digest, size)
    return '200 OK', json.dumps(record)

def record_pull_handler(environ, name, tag):
    record = environ['services']['access'].record_pull(get_authorization(environ), name, tag)
    return '200 OK', json.dumps(record)

def delete_image_handler(environ, name):
    result = environ['services']['access'].delete_image(get_authorization(environ), name)
    return '200 OK', json.dumps(result)

def delete_tag_handler(environ, name, tag):
    result = environ['services']['access'].delete_tag(get_authorization(environ), name, tag)
    return '200 OK', json.dumps(result)

def login_handler(environ, *args):
    data = get_request_data(environ)
    username, password = require_fields(data, 'username', 'password')
    result = environ['services']['access'].login(username, password)
    return '200 OK', json.dumps(result)

def refresh_token_handler(environ, *args):
    result = environ['services']['access'].refresh_token(get_authorization(environ))
    return '200 OK', json.dumps(result)

def verify_token_handler(environ, *args):
    result = environ['services']['access'].verify_token(get_authorization(environ))
    return '200 OK', json.dumps(result)

def list_users_handler(environ, *args):
    users = environ['services']['access'].list_users(get_authorization(environ))
    return '200 OK', json.dumps(users)

def create_user_handler(environ, *args):
    data = get_request_data(environ)
    username, password, email, role = require_fields(data, 'username', 'password', 'email', 'role')
    user = environ['services']['access'].create_user(get_authorization(environ), username, password, email, role)
    return '201 Created', json.dumps(user)

def update_user_handler(environ, username):
    data = get_request_data(environ)
    email, role = require_fields(data, 'email', 'role')
    user = environ['services']['access'].update_user(
        get_authorization(environ), username, email, role, data.get('password') or None
    )
    return '200 OK', json.dumps(user)

def delete_user_handler(environ, username):
    result = environ['services']['access'].delete_user(get_authorization(environ), username)
    return '200 OK', json.dumps(result)

def registry_metrics_handler(environ, *args):
    return '200 OK', json.dumps(environ['services']['access'].get_registry_metrics())

def registry_health_handler(environ, *args):
    return '200 OK', json.dumps(environ['services']['access'].registry_health())

def registry_info_handler(environ, *args):
    return '200 OK', json.dumps(environ['services']['access'].registry_info())

# 이미지 이름에는 '/'가 포함될 수 있으므로 태그 경로를 일반 이미지 경로보다 먼저 검사합니다.
ROUTES = [
    ('GET', r'^/images$', list_images_handler),
    ('POST', r'^/images$', create_image_handler),
    ('GET', r'^/images/(.+)/tags$', list_tags_handler),
    ('PUT', r'^/images/(.+)/tags/([^/]+)$', publish_tag_handler),
    ('POST', r'^/images/(.+)/tags/([^/]+)/pulls$', record_pull_handler),
    ('DELETE', r'^/images/(.+)/tags/([^/]+)$', delete_tag_handler),
    ('GET', r'^/images/(.+)$', get_image_handler),
    ('DELETE', r'^/images/(.+)$', delete_image_handler),
    ('POST', r'^/auth/login$', login_handler),
    ('POST', r'^/auth/token$', refresh_token_handler),
    ('GET', r'^/auth/verify$', verify_token_handler),
    ('GET', r'^/users$', list_users_handler),
    ('POST', r'^/users$', create_user_handler),
    ('PUT', r'^/users/([^/]+)$', update_user_handler),
    ('DELETE', r'^/users/([^/]+)$', delete_user_handler),
    ('GET', r'^/registry/metrics$', registry_metrics_handler),
    ('GET', r'^/registry/health$', registry_health_handler),
    ('GET', r'^/registry/info$', registry_info_handler),
]

def resolve_route(method, path):
    if not path.startswith(API_PREFIX):
        return None, []
    path = path[len(API_PREFIX):]
    for route_method, pattern, route_handler in ROUTES:
        if method == route_method and (match := re.match(pattern, path)):
            return route_handler, match.groups()
    return None, []

# --------------------------------------------------------------------------
## WSGI 애플리케이션 (의존성 주입 및 라우팅)
# --------------------------------------------------------------------------

def create_application(session_factory, credentials, metrics, hasher, policy=None, registry=None):
    """
    프로세스 시작 시 한 번 만든 공유 의존성으로 WSGI 애플리케이션을 구성합니다.
    DB 세션과 리포지토리는 요청마다 새로 만들어 요청 간에 상태를 공유하지 않습니다.
    """
    def application(environ, start_response):
        db_session = session_factory()
        try:
            # 1. 요청 단위 의존성 생성 (Repositories -> Services)
            store = MetadataStore(
                SqlalchemyUserRepository(db_session),
                SqlalchemyImageRepository(db_session),
                hasher,
            )
            access_service = AccessService(store, credentials, metrics, policy, registry)
            environ['services'] = {'access': access_service}

            # 2. 라우팅 및 핸들러 실행
            path = environ.get("PATH_INFO", "")
            method = environ.get("REQUEST_METHOD", "")
            handler, path_args = resolve_route(method, path)

            if handler:
                status, response_body = handler(environ, *path_args)
            else:
                status, response_body = '404 Not Found', json.dumps({'error': 'resource not found'})

        except Exception as e:
            status, response_body = handle_exception(e)
        finally:
            db_session.close()

        logger.info("%s %s -> %s", environ.get("REQUEST_METHOD"), environ.get("PATH_INFO"), status,
                    extra={"method": environ.get("REQUEST_METHOD"), "path": environ.get("PATH_INFO"), "status": status})
        start_response(status, [("Content-Type", "application/json")])
        return [response_body.encode("utf-8")]

    return application

def build_application(config: Config):
    """설정으로부터 엔진, 캐시, 자격 증명 관리자를 만들고 WSGI 애플리케이션을 반환합니다."""
    engine = create_db_engine(config.database_url, config.db_connect_timeout)
    session_factory = create_session_factory(engine)
    hasher = PasswordHasher(rounds=config.bcrypt_rounds)
    initialize_db(engine, session_factory, hasher, config.admin_username, config.admin_password, config.admin_email)

    credentials = CredentialManager(config.jwt_secret, ttl=timedelta(hours=config.token_ttl_hours))
    metrics = MetricsCache(create_redis_client(config.redis_host, config.redis_port, config.redis_timeout))
    policy = AccessPolicy.from_string(config.access_policy)
    registry = RegistryClient(config.registry_base_url)
    return create_application(session_factory, credentials, metrics, hasher, policy, registry)

# --------------------------------------------------------------------------
## 서버 실행
# --------------------------------------------------------------------------

def main():
    config = load_config()
    setup_logging(config.log_level, config.log_format)
    try:
        application = build_application(config)
        with make_server("", config.api_port, application) as httpd:
            logger.info("Starting registry metadata service on port %s", config.api_port)
            httpd.serve_forever()
    except Exception as e:
        logger.critical("Error starting server: %s", e, exc_info=e)
        sys.exit(1)

if __name__ == "__main__":
    main()
