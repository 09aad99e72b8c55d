"""Read, digest and write pipeline."""

import logging

from .config import DigesterConfig
from .dispatch import read_image
from .utils.digest import Digest, image_digest
from .writer import write_digest

logger = logging.getLogger(__name__)


async def digest_image(config: DigesterConfig) -> Digest:
    """이미지를 읽어 매니페스트 digest를 계산하고 digest 파일로 기록합니다.

    Args:
        config: 실행 설정 (DigesterConfig.from_args로 생성)

    Returns:
        Digest: 이미지 매니페스트의 sha256 digest

    Raises:
        DigesterError: 읽기, 생성, 기록 중 하나라도 실패한 경우

    Examples:
        # docker save tarball의 digest 기록
        config = DigesterConfig.from_args(
            dst="out.digest", image_format="docker", src="image.tar"
        )
        digest = await digest_image(config)
        print(digest)  # sha256:...
    """
    image = await read_image(config)
    digest = image_digest(image)
    logger.debug(f"Image manifest digest: {digest}")

    await write_digest(digest, config.dst)
    logger.info(f"Successfully generated image digest file at {config.dst}")
    return digest
