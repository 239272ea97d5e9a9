"""
Template-based CMS sites: WordPress with WooCommerce, Elementor or Divi.

Archive/loop containers, lazily loaded images, classic page-number links.
"""

from ..base import TechnologyGroup
from .base import ExtractionStrategy, ScrapeContext

# Short scroll that makes lazy-load plugins swap in real image URLs
LAZY_WARMUP_ITERATIONS = 3


class TemplateCmsStrategy(ExtractionStrategy):
    group = TechnologyGroup.TEMPLATE_CMS
    lazy_images = True

    DEFAULT_SELECTORS = {
        'container': [
            '.products',
            '.elementor-loop-container',
            '.et_pb_shop',
            '.elementor-posts',
            '.elementor-posts-container',
            '.woocommerce-products',
        ],
        'item': [
            '.product',
            '.e-loop-item',
            '.et_pb_shop_item',
            '.elementor-post',
            '.woocommerce-product',
            'article',
        ],
        'title': [
            '.woocommerce-loop-product__title',
            '.elementor-heading-title',
            '.elementor-post__title',
            '.entry-title',
            'h2',
            'h3',
        ],
        'price': [
            '.price',
            '.woocommerce-Price-amount',
            '.elementor-price',
            '.et_pb_module_header',
        ],
        'image': [
            'img.attachment-woocommerce_thumbnail',
            'img.wp-post-image',
            'img.elementor-image',
            'img[data-src]',
        ],
        'link': [
            'a.woocommerce-LoopProduct-link',
            'a.elementor-post__thumbnail__link',
            'a.product-link',
        ],
        'details': [
            '.woocommerce-product-details__short-description',
            '.elementor-post__excerpt',
            '.product-attributes',
        ],
    }

    async def expand(self, ctx: ScrapeContext):
        if ctx.profile.feature_flags.has_lazy_images:
            await self.navigation.scroll_to_exhaustion(
                ctx.handle,
                min(LAZY_WARMUP_ITERATIONS, self.settings.max_scroll_iterations),
            )
