import re
from typing import Optional

TOKEN_EXPIRED_CODE = "TOKEN_EXPIRED"
TOKEN_EXPIRED_MESSAGE = "Ödeme süresi doldu"

_TURKISH_CHARS = re.compile(r"[ğüşıöçĞÜŞİÖÇ]")

DEFAULT_MESSAGE = "Ödeme işlemi başarısız oldu. Lütfen tekrar deneyin veya başka bir kart kullanın."

# (подстроки в коде, подстроки в сообщении, текст для клиента), проверяются по порядку
_RULES = (
    ((), ("güvenlik", "security", "3ds"),
     "Banka güvenlik doğrulaması başarısız oldu. Lütfen bankanızla iletişime geçin veya başka bir kart deneyin."),
    (("DECLINED",), ("declined", "reddedildi"),
     "Kartınız reddedildi. Lütfen bankanızla iletişime geçin veya başka bir kart deneyin."),
    (("INSUFFICIENT",), ("insufficient", "yetersiz"),
     "Kart bakiyeniz yetersiz. Lütfen başka bir kart deneyin."),
    (("LIMIT",), ("limit",),
     "Kart limitiniz aşıldı. Lütfen başka bir kart deneyin."),
    (("INVALID",), ("invalid", "geçersiz"),
     "Kart bilgileri geçersiz. Lütfen bilgileri kontrol edip tekrar deneyin."),
    (("FRAUD",), ("fraud", "şüpheli"),
     "İşlem güvenlik nedeniyle reddedildi. Lütfen bankanızla iletişime geçin."),
    (("TIMEOUT", "CONNECTION"), ("timeout", "connection"),
     "Banka bağlantısı zaman aşımına uğradı. Lütfen tekrar deneyin."),
)


def _token_message(message: str) -> Optional[str]:
    if "expired" in message or "süre" in message:
        return "Ödeme süresi doldu. Lütfen sayfayı yenileyip tekrar deneyin."
    if "not found" in message or "bulunamadı" in message:
        return "Ödeme oturumu bulunamadı. Lütfen sepetinize dönüp tekrar deneyin."
    if "already used" in message or "kullanılmış" in message:
        return "Bu ödeme işlemi zaten tamamlandı."
    return None


def map_gateway_error(error_code: Optional[str] = None, error_message: Optional[str] = None) -> str:
    """Код/текст ошибки iyzico -> понятное клиенту сообщение на турецком"""
    if not error_code and not error_message:
        return "Ödeme işlemi başarısız oldu. Lütfen tekrar deneyin."

    code = (error_code or "").upper()
    message = (error_message or "").lower()

    if "TOKEN" in code or "token" in message:
        token_message = _token_message(message)
        if token_message:
            return token_message

    for code_parts, message_parts, text in _RULES:
        if any(part in code for part in code_parts) or any(part in message for part in message_parts):
            return text

    # iyzico иногда сам отдаёт текст на турецком
    if error_message and _TURKISH_CHARS.search(error_message):
        return error_message

    return DEFAULT_MESSAGE
