"""
Bank Service
Access control and sharing for question banks
"""
import logging

from evalify.extensions import db
from evalify.errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from evalify.models import Bank, BankUser, Topic, User
from evalify.models.bank import ACCESS_RANK
from evalify.utils.helpers import clean_text

logger = logging.getLogger(__name__)

SHAREABLE_LEVELS = ('READ', 'WRITE')


class BankService:
    """Service for bank access and sharing"""

    @staticmethod
    def access_level(bank, user):
        # ADMIN is treated as owner of every bank
        if user.role == 'ADMIN':
            return 'OWNER'
        return bank.access_level_for(user)

    @staticmethod
    def get_bank(bank_id, user, required='READ'):
        """Load a bank and check the caller holds at least the required level"""
        bank = db.session.get(Bank, bank_id)
        if bank is None:
            raise NotFoundError('Bank not found')
        level = BankService.access_level(bank, user)
        if level is None or ACCESS_RANK[level] < ACCESS_RANK[required]:
            raise PermissionDenied(f'{required} access to this bank is required')
        return bank, level

    @staticmethod
    def accessible_banks(user):
        """[(bank, access_level)] for every bank the user can read"""
        if user.role == 'ADMIN':
            return [(bank, 'OWNER') for bank in Bank.query.order_by(Bank.created_at.desc()).all()]
        entries = (
            BankUser.query.filter_by(user_id=user.id)
            .join(Bank)
            .order_by(Bank.created_at.desc())
            .all()
        )
        return [(entry.bank, entry.access_level) for entry in entries]

    @staticmethod
    def create_bank(name, course_code, semester, user):
        bank = Bank(name=name, course_code=course_code, semester=semester, created_by_id=user.id)
        bank.users.append(BankUser(user_id=user.id, access_level='OWNER'))
        db.session.add(bank)
        db.session.commit()
        logger.info('Bank %s created by user %s', bank.id, user.id)
        return bank

    @staticmethod
    def share(bank, owner, user_id, access_level):
        """Grant or change READ/WRITE access for a staff member"""
        if access_level not in SHAREABLE_LEVELS:
            raise ValidationError(f'Access level must be one of: {", ".join(SHAREABLE_LEVELS)}')
        if user_id == owner.id:
            raise ValidationError('Cannot share a bank with yourself')

        target = db.session.get(User, user_id)
        if target is None or target.role != 'STAFF':
            raise NotFoundError('Staff member not found')

        entry = BankUser.query.filter_by(bank_id=bank.id, user_id=user_id).first()
        if entry is not None and entry.access_level == 'OWNER':
            raise ConflictError('User already owns this bank')
        if entry is None:
            entry = BankUser(bank_id=bank.id, user_id=user_id, access_level=access_level)
            db.session.add(entry)
        else:
            entry.access_level = access_level

        db.session.commit()
        logger.info('Bank %s shared with user %s (%s)', bank.id, user_id, access_level)
        return entry

    @staticmethod
    def unshare(bank, owner, user_id):
        if user_id == owner.id:
            raise ValidationError('Cannot remove your own access')
        entry = BankUser.query.filter_by(bank_id=bank.id, user_id=user_id).first()
        if entry is None:
            raise NotFoundError('Bank is not shared with this user')
        if entry.access_level == 'OWNER':
            raise ValidationError('Cannot remove an owner')
        db.session.delete(entry)
        db.session.commit()
        logger.info('Bank %s unshared from user %s', bank.id, user_id)

    @staticmethod
    def create_topic(bank, name):
        name = clean_text(name)
        if not name:
            raise ValidationError('Topic name is required')
        if Topic.query.filter_by(bank_id=bank.id, name=name).first():
            raise ConflictError('Topic already exists in this bank')
        topic = Topic(bank_id=bank.id, name=name)
        db.session.add(topic)
        db.session.commit()
        return topic
