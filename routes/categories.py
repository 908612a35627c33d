import logging

from flask import Blueprint, jsonify, g, request
from sqlalchemy import func
from utils.utils import login_required, roles_required
from classes.validators import clean_text, validate_length

from models import db
from models.categories import Category
from models.courses import Course

logger = logging.getLogger(__name__)

# Categories' blueprint
category_bp = Blueprint("categories", __name__)


def name_taken(name, exclude_id=None):
    query = Category.query.filter(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


@category_bp.route("", methods=["GET"])
def get_categories():
    course_count = func.count(Course.id)
    rows = db.session.query(Category, course_count).outerjoin(
        Course, Course.category_id == Category.id
    ).group_by(Category.id).order_by(Category.name).all()

    return jsonify({
        "categories": [{**category.to_dict(), "course_count": count} for category, count in rows]
    }), 200


@category_bp.route("", methods=["POST"])
@login_required
@roles_required("admin")
def create_category():
    data = request.get_json(silent=True) or {}
    name = clean_text(data.get("name"))

    if not name:
        return jsonify({"error": "Name is required"}), 400
    try:
        validate_length("Name", name, 100)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if name_taken(name):
        return jsonify({"error": "Category with this name already exists"}), 400

    category = Category(name=name, description=clean_text(data.get("description")))
    db.session.add(category)
    db.session.commit()

    logger.info("Category created: id=%s name=%s by=%s", category.id, category.name, g.user.get("user_id"))
    return jsonify({"message": "Category created successfully", "category": category.to_dict()}), 201


@category_bp.route("/<int:category_id>", methods=["PATCH"])
@login_required
@roles_required("admin")
def update_category(category_id):
    category = db.session.get(Category, category_id)
    if not category:
        return jsonify({"error": "Category not found"}), 404

    data = request.get_json(silent=True) or {}
    if "name" in data:
        name = clean_text(data["name"])
        if not name:
            return jsonify({"error": "Name cannot be empty"}), 400
        try:
            validate_length("Name", name, 100)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        if name_taken(name, exclude_id=category_id):
            return jsonify({"error": "Category with this name already exists"}), 400
        category.name = name
    if "description" in data:
        category.description = clean_text(data["description"])
    db.session.commit()

    return jsonify({"message": "Category updated successfully", "category": category.to_dict()}), 200


@category_bp.route("/<int:category_id>", methods=["DELETE"])
@login_required
@roles_required("admin")
def delete_category(category_id):
    category = db.session.get(Category, category_id)
    if not category:
        return jsonify({"error": "Category not found"}), 404

    if Course.query.filter_by(category_id=category_id).first():
        return jsonify({
            "error": "Cannot delete category that has courses. Please reassign or delete courses first."
        }), 400

    db.session.delete(category)
    db.session.commit()
    logger.info("Category deleted: id=%s by=%s", category_id, g.user.get("user_id"))

    return jsonify({"message": "Category deleted successfully"}), 200
