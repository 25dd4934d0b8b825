# improvements.py
"""Improvement selector for PDF audits.

Turns website signals (or the absence of a website) into at most five
sales-oriented talking points, one per category.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import (
    BusinessEntity,
    ImprovementCategory,
    ImprovementItem,
    PlaceRecord,
)

MAX_IMPROVEMENTS = 5

C = ImprovementCategory

# Title and description per category
IMPROVEMENT_TEXTS: Dict[ImprovementCategory, Tuple[str, str]] = {
    C.VISIBILITE: (
        "Vos clients vous cherchent... mais ne vous trouvent pas",
        "Sans site web, vous êtes invisible pour les 89% de clients qui recherchent "
        "d'abord en ligne avant d'appeler. Vos concurrents captent ces clients à "
        "votre place, chaque jour.",
    ),
    C.DISPONIBILITE: (
        "Vous perdez des appels pendant que vous dormez",
        "Vos clients potentiels cherchent vos services à toute heure. Un site web "
        "travaille pour vous 24h/24, même le weekend et les jours fériés, sans "
        "aucun effort de votre part.",
    ),
    C.CONTACT: (
        "Impossible pour vos clients de vous contacter facilement",
        "Aujourd'hui, les clients veulent obtenir un devis ou prendre RDV en 2 clics "
        "depuis leur smartphone. Sans cette facilité, ils appellent votre concurrent "
        "qui l'offre.",
    ),
    C.CREDIBILITE: (
        "Vos clients doutent de votre professionnalisme",
        "78% des consommateurs jugent la crédibilité d'une entreprise par son site "
        "web. Sans présence digitale, vous paraissez moins sérieux que vos "
        "concurrents, même si c'est faux.",
    ),
    C.PREUVE_SOCIALE: (
        "Vous ne pouvez pas prouver la qualité de votre travail",
        "Vos meilleurs projets restent invisibles. Un site avec photos avant/après "
        "et témoignages clients multiplie par 4 votre taux de conversion téléphone "
        "→ client.",
    ),
    C.SECURITE: (
        "Google cache votre site à vos clients",
        "Sans certificat HTTPS, Google classe votre site comme 'non sécurisé' et le "
        "fait descendre dans les résultats. Résultat : 67% de vos clients potentiels "
        "ne vous trouvent jamais.",
    ),
    C.MOBILE: (
        "6 visiteurs sur 10 partent immédiatement",
        "Votre site est illisible sur smartphone. Or 63% de vos clients vous "
        "cherchent depuis leur téléphone. Ils partent voir vos concurrents en 3 "
        "secondes chrono.",
    ),
    C.VITESSE: (
        "Vos clients n'attendent pas plus de 3 secondes",
        "Votre site est trop lent : vous perdez 7% de clients potentiels par seconde "
        "de chargement. Sur un an, c'est des dizaines de milliers d'euros de CA qui "
        "s'évaporent.",
    ),
    C.REFERENCEMENT: (
        "Vous êtes invisible sur Google dans votre ville",
        "Quand un client tape '[votre activité] Lyon', vous n'apparaissez pas. Vos "
        "concurrents récupèrent 100% des clients qui vous cherchent. C'est comme "
        "avoir une boutique sans enseigne.",
    ),
    C.DESCRIPTION: (
        "Votre site ne donne pas envie de cliquer",
        "Sur Google, votre site s'affiche sans description accrocheuse. Les gens "
        "cliquent sur vos concurrents à la place. Vous ratez 54% de visiteurs "
        "potentiels gratuitement.",
    ),
    C.EXPERIENCE: (
        "Votre site fait fuir les clients au lieu de les convaincre",
        "Des problèmes techniques donnent une image amateur de votre entreprise. Les "
        "clients se demandent : 'Si leur site est négligé, est-ce que leur service "
        "le sera aussi ?'",
    ),
    C.FORMULAIRE: (
        "Vous ratez des demandes de devis toute la journée",
        "Sans formulaire de contact simple, vos clients doivent décrocher leur "
        "téléphone. 73% abandonnent et vont chez le concurrent qui a un formulaire "
        "en ligne.",
    ),
    C.TEMOIGNAGES: (
        "Vos clients satisfaits ne peuvent pas vous recommander",
        "Vos meilleurs arguments de vente (les avis 5 étoiles de vrais clients) sont "
        "invisibles. Afficher des témoignages augmente vos conversions de +270%.",
    ),
    C.PORTFOLIO: (
        "Impossible de voir la qualité de votre travail",
        "Sans photos de vos réalisations, les clients doutent. Un portfolio photo "
        "bien présenté divise par 2 le temps de décision et double votre taux de "
        "conversion.",
    ),
    C.RESEAUX_SOCIAUX: (
        "Vous perdez la connexion avec vos clients fidèles",
        "Sans lien vers vos réseaux sociaux, vos clients ne peuvent pas suivre votre "
        "actualité. Vous ratez des occasions de les faire revenir et de créer du "
        "bouche-à-oreille.",
    ),
    C.CONVERSION: (
        "Des clients prêts à acheter vous glissent entre les doigts",
        "En améliorant l'expérience de visite de votre site, vous transformeriez 3 "
        "fois plus de visiteurs en clients. C'est de l'argent facile à récupérer.",
    ),
    C.CONCURRENCE: (
        "Vos concurrents volent vos clients sous votre nez",
        "Pendant que vous lisez ceci, des clients comparent les sites de vos "
        "concurrents. Sans site optimisé, vous perdez systématiquement ces "
        "comparaisons, même si votre service est meilleur.",
    ),
    C.TELEPHONE: (
        "Votre téléphone pourrait sonner 2 fois plus",
        "Un site web optimisé pour la conversion génère en moyenne 2 à 3 fois plus "
        "d'appels qu'un site négligé. C'est comme avoir un commercial qui travaille "
        "gratuitement pour vous 24/7.",
    ),
    C.MANQUE_GAGNER: (
        "Vous laissez de l'argent sur la table chaque mois",
        "Chaque visiteur qui part sans vous contacter, c'est un client potentiel "
        "perdu. Sur un an, les problèmes de votre site vous coûtent probablement "
        "l'équivalent de plusieurs mois de CA.",
    ),
    C.VALORISATION: (
        "Vos meilleurs atouts restent cachés",
        "Vous avez des années d'expérience, des dizaines de clients satisfaits, mais "
        "personne ne le voit en ligne. Un bon site met en valeur VOTRE expertise "
        "unique qui justifie vos tarifs.",
    ),
    C.EFFICACITE: (
        "Vous travaillez 2 fois plus pour le même résultat",
        "Sans site efficace, vous devez convaincre chaque client au téléphone. Un "
        "site bien fait fait 80% du travail de conviction AVANT l'appel, vous "
        "libérant un temps précieux.",
    ),
}

NO_WEBSITE_CATEGORIES = (
    C.VISIBILITE,
    C.DISPONIBILITE,
    C.CONTACT,
    C.CREDIBILITE,
    C.PREUVE_SOCIALE,
)

GENERIC_CATEGORIES = (
    C.CONCURRENCE,
    C.TELEPHONE,
    C.MANQUE_GAGNER,
    C.VALORISATION,
    C.EFFICACITE,
)

# Ordered keyword tables; the first matching rule wins
ISSUE_RULES: Sequence[Tuple[Tuple[str, ...], ImprovementCategory]] = (
    (("ssl", "https"), C.SECURITE),
    (("mobile", "viewport"), C.MOBILE),
    (("lent", "performance", "chargement"), C.VITESSE),
    (("titre", "title", "seo"), C.REFERENCEMENT),
    (("description", "meta"), C.DESCRIPTION),
)
ISSUE_FALLBACK = C.EXPERIENCE

OPPORTUNITY_RULES: Sequence[Tuple[Tuple[str, ...], ImprovementCategory]] = (
    (("formulaire", "contact"), C.FORMULAIRE),
    (("témoignage", "avis"), C.TEMOIGNAGES),
    (("photo", "galerie", "portfolio"), C.PORTFOLIO),
    (("réseaux", "social"), C.RESEAUX_SOCIAUX),
)
OPPORTUNITY_FALLBACK = C.CONVERSION


def classify_label(
    label: str,
    rules: Sequence[Tuple[Tuple[str, ...], ImprovementCategory]],
    fallback: ImprovementCategory,
) -> ImprovementCategory:
    """Map a free-text label to a category by case-insensitive keyword match."""
    lowered = label.lower()
    for keywords, category in rules:
        if any(keyword in lowered for keyword in keywords):
            return category
    return fallback


def make_item(category: ImprovementCategory) -> ImprovementItem:
    title, description = IMPROVEMENT_TEXTS[category]
    return ImprovementItem(title=title, description=description, category=category)


class _Selection:
    """Per-call accumulator enforcing one item per category."""

    def __init__(self):
        self.items: List[ImprovementItem] = []
        self.used: Set[ImprovementCategory] = set()

    @property
    def full(self) -> bool:
        return len(self.items) >= MAX_IMPROVEMENTS

    def add(self, category: ImprovementCategory) -> bool:
        if category in self.used or self.full:
            return False
        self.items.append(make_item(category))
        self.used.add(category)
        return True


def select_top5(entity: BusinessEntity) -> List[ImprovementItem]:
    """Select up to five distinct-category improvements for a business.

    Businesses without a website get the five fixed no-website items.
    Otherwise detected issues come first, then opportunities, then the
    generic backfill, each in its own order.

    Args:
        entity: Business to audit.

    Returns:
        Ordered list of at most five ImprovementItem, categories distinct.
    """
    selection = _Selection()

    if not entity.has_website:
        for category in NO_WEBSITE_CATEGORIES:
            selection.add(category)
    elif entity.website_signals is not None:
        signals = entity.website_signals

        for issue in signals.issues:
            selection.add(classify_label(issue, ISSUE_RULES, ISSUE_FALLBACK))

        for opportunity in signals.opportunities:
            if selection.full:
                break
            selection.add(
                classify_label(opportunity, OPPORTUNITY_RULES, OPPORTUNITY_FALLBACK)
            )

    for category in GENERIC_CATEGORIES:
        if selection.full:
            break
        selection.add(category)

    return selection.items[:MAX_IMPROVEMENTS]


def improvements_payload(entity: BusinessEntity) -> List[Dict[str, str]]:
    """Top improvements as plain dicts, without the internal category."""
    return [item.model_dump() for item in select_top5(entity)]


def build_audit_payload(
    place: PlaceRecord,
    entity: Optional[BusinessEntity] = None,
) -> Dict[str, Any]:
    """Build the document consumed by the PDF audit renderer.

    Args:
        place: Place record providing contact details.
        entity: Scoring view of the place; derived from ``place`` when omitted.

    Returns:
        Dictionary with business details and the improvement list.
    """
    entity = entity or place.to_business_entity()
    return {
        "businessName": place.name,
        "address": place.address,
        "phone": place.phone,
        "website": place.website,
        "rating": place.rating,
        "reviewsCount": place.review_count,
        "improvements": improvements_payload(entity),
    }


def categories_of(items: Iterable[ImprovementItem]) -> List[ImprovementCategory]:
    """Categories of a list of items, in order."""
    return [item.category for item in items]
