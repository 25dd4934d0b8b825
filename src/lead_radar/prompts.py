# prompts.py
"""Prompt templates for qualification, business scoring and messaging.

Every template ends with a rigid output-format block. The field labels
used there are the module constants below; ``response_parser`` builds its
patterns from the same constants.
"""

import json
from enum import Enum
from typing import List, Optional, Union

from .config import config
from .models import BusinessEntity, MessageInput, RawLead, Segment, SKIP_SENTINEL
from .website_analyzer import summarize_opportunities

# Qualification labels
SCORE_LABEL = "Score"
VERDICT_LABEL = "Verdict"
SEGMENT_LABEL = "Segment"
JUSTIFICATION_LABEL = "Justification"

# Business scoring and messaging labels
SIZE_LABEL = "TAILLE"
NOTE_LABEL = "NOTE"
REASONING_LABEL = "RAISONNEMENT"
MESSAGE_LABEL = "MESSAGE"

MIN_BUDGET_EUR = "3 000 €"
MAX_BUDGET_EUR = "8 000 €"


class PromptTask(str, Enum):
    """Prompt template families."""

    QUALIFICATION = "qualification"
    BUSINESS_SCORING = "business_scoring"
    MESSAGE = "message"


def build_qualification_prompt(lead: RawLead) -> str:
    """Prompt deciding whether a company can afford a web project."""
    observations = json.dumps(lead.raw_data, ensure_ascii=False, default=str)

    return f"""
Tu es un expert en acquisition B2B et en projets digitaux.

Objectif :
Décider si cette entreprise peut investir entre {MIN_BUDGET_EUR} et {MAX_BUDGET_EUR}.

Entreprise :
Nom : {lead.company_name}
Secteur : {lead.sector}
Ville : {lead.city}
Observations : {observations}

Analyse :
- potentiel business
- maturité digitale
- besoin réel

Répond STRICTEMENT :
{SCORE_LABEL}: X/10
{VERDICT_LABEL}: CONTACTER ou IGNORER
{SEGMENT_LABEL}: Artisan ou B2B
{JUSTIFICATION_LABEL}: texte court
"""


def build_scoring_prompt(
    entity: BusinessEntity,
    agency_city: Optional[str] = None,
    threshold: Optional[int] = None,
) -> str:
    """Prompt scoring a Google Maps business and drafting a first message."""
    agency_city = agency_city or config.AGENCY_CITY
    threshold = threshold if threshold is not None else config.CONTACT_SCORE_THRESHOLD
    has_site = "Oui" if entity.has_website else "Non"
    analysis = entity.website_summary or summarize_opportunities(
        entity.website_signals
    )

    return f"""Tu es un expert en prospection B2B pour une agence web freelance basée à {agency_city}.

ENTREPRISE À ANALYSER:
- Nom: {entity.name}
- Catégorie: {entity.category}
- Note Google: {entity.rating}/5 ({entity.review_count} avis)
- Site web: {has_site}
- Analyse du site: {analysis}

CRITÈRES DE QUALIFICATION:
1. **Capacité financière**: L'entreprise génère-t-elle assez de CA pour se payer des services web (min 200k€/an) ?
   - Utilise le nombre d'avis, la note, et le type d'activité pour estimer
   - Restaurants avec 200+ avis = probablement rentable
   - Boutiques avec 50+ avis = probablement viable
   - Services professionnels (avocats, comptables) = souvent bon CA

2. **Besoin web**: L'activité nécessite-t-elle une présence web forte ?
   - Restaurants, boutiques, services = OUI
   - Artisans locaux uniquement = MOYEN

3. **Opportunités**: Y a-t-il des axes d'amélioration clairs et vendables ?
   - Pas de site = grosse opportunité
   - Site avec problèmes = opportunité moyenne
   - Site moderne et performant = faible opportunité

RÈGLE ABSOLUE:
Si l'entreprise a un site et qu'aucun problème ni aucune opportunité n'a été détecté, la NOTE doit être inférieure à {threshold}.

TÂCHE:
1. Estime la taille de l'entreprise: "small" (< 5 employés), "medium" (5-20), "large" (20+)
2. Note la pertinence du lead de 0 à 10
3. Explique ton raisonnement en 2-3 phrases
4. Si score >= {threshold}: Génère un message de prospection personnalisé (3-4 phrases max, professionnel mais sympa)
5. Si score < {threshold}: Écris juste "{SKIP_SENTINEL}"

FORMAT DE RÉPONSE:
{SIZE_LABEL}: [small/medium/large]
{NOTE_LABEL}: [0-10]/10
{REASONING_LABEL}: [Ton analyse]
{MESSAGE_LABEL}: [Message de prospection OU "{SKIP_SENTINEL}"]"""


def _artisan_prompt(data: MessageInput) -> str:
    return f"""
Tu es un freelance spécialisé dans les sites web pour artisans.

Contexte :
Entreprise : {data.company_name}
Ville : {data.city}
Problème identifié : {data.problem_detected}

Objectif :
Rédige un message simple, professionnel, humain.
Pas de vente directe. Pas de jargon technique.
Objectif : initier une discussion.

{MESSAGE_LABEL}:
"""


def _b2b_prompt(data: MessageInput) -> str:
    return f"""
Tu es un freelance spécialisé dans les outils métiers et sites B2B.

Entreprise : {data.company_name}
Problème : {data.problem_detected}
Angle business : {data.business_angle}

Rédige un message professionnel, personnalisé,
orienté valeur et échange, pas vente.

{MESSAGE_LABEL}:
"""


def _freelance_prompt(data: MessageInput, signature: List[str]) -> str:
    signature_block = "\n".join(signature)

    return f"""
Tu es un freelance senior spécialisé dans la création de sites web, SaaS et applications sur mesure pour des entreprises.

RÈGLES STRICTES :
- Tu NE RÉPONDS PAS si le projet semble déjà très concurrentiel (beaucoup de réponses probables, besoin très générique ou ultra détaillé).
- Tu privilégies uniquement les projets récents, encore ouverts, avec peu de signaux de saturation.
- Si tu estimes que le projet ne vaut pas la peine, réponds uniquement : "{SKIP_SENTINEL}".

SI TU RÉPONDS :
- Maximum 1000 caractères
- Ton professionnel, humain, clair, non robotique
- Ne JAMAIS répéter mot pour mot les phrases du projet
- Reformuler avec tes propres mots
- Mettre en avant une compréhension métier
- Être différenciant (pas générique)

CONTENU OBLIGATOIRE :
1. Une phrase d'accroche personnalisée
2. Une proposition claire de valeur
3. Une estimation réaliste de prix en fonction de l'estimation de la charge que ça pourrait prendre
4. Un délai de réalisation réaliste
5. Une invitation à échanger (sans être agressif)

SIGNATURE OBLIGATOIRE (à la fin) :
{signature_block}

CONTEXTE DU PROJET :
Description du besoin :
\"\"\"{data.problem_detected}\"\"\"

ANGLE BUSINESS À PRIVILÉGIER :
{data.business_angle}
Tu dois aussi attribuer une {NOTE_LABEL} sur 10 à ce projet selon son intérêt commercial pour toi.
Format STRICT de sortie :

{NOTE_LABEL}: X/10
{MESSAGE_LABEL}:
Rédige maintenant la réponse.
"""


def build_message_prompt(
    data: MessageInput,
    signature: Optional[List[str]] = None,
) -> str:
    """Prompt drafting a prospecting message for the input's segment."""
    if data.segment == Segment.ARTISAN:
        return _artisan_prompt(data)
    if data.segment == Segment.FREELANCE_SME:
        return _freelance_prompt(data, signature or config.MESSAGE_SIGNATURE)
    return _b2b_prompt(data)


def build(
    task: PromptTask,
    entity: Union[RawLead, BusinessEntity, MessageInput],
) -> str:
    """Build the prompt for a task.

    Args:
        task: Template family.
        entity: RawLead for qualification, BusinessEntity for business
            scoring, MessageInput for messaging.

    Returns:
        The prompt text.

    Raises:
        TypeError: If the entity does not match the task.
    """
    expected = {
        PromptTask.QUALIFICATION: RawLead,
        PromptTask.BUSINESS_SCORING: BusinessEntity,
        PromptTask.MESSAGE: MessageInput,
    }[PromptTask(task)]

    if not isinstance(entity, expected):
        raise TypeError(
            f"{task} prompt expects {expected.__name__}, got {type(entity).__name__}"
        )

    if isinstance(entity, RawLead):
        return build_qualification_prompt(entity)
    if isinstance(entity, BusinessEntity):
        return build_scoring_prompt(entity)
    return build_message_prompt(entity)
